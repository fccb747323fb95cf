from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Set


class DirectoryService(ABC):
    """Abstract base class for a tenant directory (users, groups, relationships)."""

    @abstractmethod
    def test_connection(self) -> bool:
        """Test service connectivity"""
        pass

    # ---- Enumeration (export side) -------------------------------------------

    @abstractmethod
    def list_security_groups(self, include_mail_enabled: bool = False) -> Iterable[Dict[str, Any]]:
        """Yield security groups as raw directory objects"""
        pass

    @abstractmethod
    def list_group_members(self, group_id: str) -> Iterable[Dict[str, Any]]:
        """Yield direct members (users, groups and other object types)"""
        pass

    @abstractmethod
    def list_group_owners(self, group_id: str) -> Iterable[Dict[str, Any]]:
        """Yield direct owners"""
        pass

    # ---- Exact-match lookups -------------------------------------------------

    @abstractmethod
    def find_users(self, field: str, value: str) -> List[Dict[str, Any]]:
        """Return every user whose `field` equals `value` exactly"""
        pass

    @abstractmethod
    def find_groups(self, field: str, value: str) -> List[Dict[str, Any]]:
        """Return every group whose `field` equals `value` exactly"""
        pass

    @abstractmethod
    def get_member_ids(self, group_id: str) -> Set[str]:
        pass

    @abstractmethod
    def get_owner_ids(self, group_id: str) -> Set[str]:
        pass

    # ---- Mutations (import side) ---------------------------------------------

    @abstractmethod
    def create_group(self, display_name: str, security_enabled: bool, mail_enabled: bool,
                     description: Optional[str] = None,
                     mail_nickname: Optional[str] = None) -> Dict[str, Any]:
        """Create a group and return the created directory object"""
        pass

    @abstractmethod
    def add_member(self, group_id: str, object_id: str) -> None:
        pass

    @abstractmethod
    def add_owner(self, group_id: str, object_id: str) -> None:
        pass
