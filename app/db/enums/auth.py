"""Auth-related enums."""

from enum import Enum


class AgentRole(str, Enum):
    """
    Operator roles.

    - AGENT: Works the support inbox
    - ADMIN: Can also manage other agents
    """

    AGENT = "agent"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_
