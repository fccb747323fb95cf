import logging
from collections import defaultdict
from itertools import count

import pytest

from gcch_migration.errors import GraphError
from gcch_migration.models.records import GroupRecord, MembershipEdge, OwnershipEdge
from gcch_migration.services.base import DirectoryService


class FakeDirectory(DirectoryService):
    """In-memory directory that records every mutating call."""

    def __init__(self):
        self._ids = count(1)
        self.users = []
        self.groups = []
        self.other_objects = {}
        self.members = defaultdict(list)
        self.owners = defaultdict(list)
        self.calls = []
        self.lookups = []
        self.fail_creates = set()
        self.fail_adds = set()
        self.broken_lookups = set()
        self.broken_listings = set()

    # ---- seeding -------------------------------------------------------------

    def _new_id(self, kind):
        return f"{kind}-{next(self._ids)}"

    def add_user(self, display_name, mail_nickname=None, upn=None):
        user = {
            "@odata.type": "#microsoft.graph.user",
            "id": self._new_id("user"),
            "displayName": display_name,
            "mailNickname": mail_nickname,
            "userPrincipalName": upn,
        }
        self.users.append(user)
        return user["id"]

    def add_group(self, display_name, mail_nickname=None, mail_enabled=False, group_types=()):
        group = {
            "@odata.type": "#microsoft.graph.group",
            "id": self._new_id("group"),
            "displayName": display_name,
            "mailNickname": mail_nickname,
            "mailEnabled": mail_enabled,
            "securityEnabled": True,
            "groupTypes": list(group_types),
            "description": None,
        }
        self.groups.append(group)
        return group["id"]

    def relate(self, relation, group_id, object_id):
        getattr(self, relation)[group_id].append(object_id)

    def _object(self, object_id):
        for obj in self.users + self.groups:
            if obj["id"] == object_id:
                return obj
        return self.other_objects[object_id]

    @property
    def mutations(self):
        return list(self.calls)

    # ---- DirectoryService ----------------------------------------------------

    def test_connection(self):
        return True

    def list_security_groups(self, include_mail_enabled=False):
        for g in self.groups:
            if g["mailEnabled"] and not include_mail_enabled:
                continue
            yield g

    def _list(self, relation, group_id):
        if (relation, group_id) in self.broken_listings:
            raise GraphError(f"GET /groups/{group_id}/{relation} -> 503", status_code=503)
        return [self._object(i) for i in getattr(self, relation)[group_id]]

    def list_group_members(self, group_id):
        return self._list("members", group_id)

    def list_group_owners(self, group_id):
        return self._list("owners", group_id)

    def _find(self, objects, kind, field, value):
        self.lookups.append((kind, field, value))
        if value in self.broken_lookups:
            raise GraphError(f"GET /{kind} -> 503", status_code=503)
        return [dict(o) for o in objects if o.get(field) == value]

    def find_users(self, field, value):
        return self._find(self.users, "users", field, value)

    def find_groups(self, field, value):
        return self._find(self.groups, "groups", field, value)

    def get_member_ids(self, group_id):
        return set(self.members[group_id])

    def get_owner_ids(self, group_id):
        return set(self.owners[group_id])

    def create_group(self, display_name, security_enabled, mail_enabled, description=None, mail_nickname=None):
        self.calls.append(("create_group", display_name, mail_nickname))
        if display_name in self.fail_creates:
            raise GraphError("POST /groups -> 400: Request_BadRequest", status_code=400)
        group_id = self.add_group(display_name, mail_nickname, mail_enabled)
        return {"id": group_id, "displayName": display_name}

    def add_member(self, group_id, object_id):
        self.calls.append(("add_member", group_id, object_id))
        if (group_id, object_id) in self.fail_adds:
            raise GraphError("POST members/$ref -> 400", status_code=400)
        self.members[group_id].append(object_id)

    def add_owner(self, group_id, object_id):
        self.calls.append(("add_owner", group_id, object_id))
        if (group_id, object_id) in self.fail_adds:
            raise GraphError("POST owners/$ref -> 400", status_code=400)
        self.owners[group_id].append(object_id)


def group_record(name, source_id=None, mail_nickname=None, mail_enabled=False, description=None):
    return GroupRecord(
        display_name=name,
        source_object_id=source_id or f"src-{name}",
        mail_nickname=mail_nickname,
        mail_enabled=mail_enabled,
        description=description,
    )


def member_edge(group, name, member_type="User", upn=None, nickname=None, model=MembershipEdge):
    return model(
        group_name=group,
        group_source_object_id=f"src-{group}",
        member_type=member_type,
        member_display_name=name,
        member_principal_name=upn,
        member_mail_nickname=nickname,
        member_source_object_id=f"src-{name}",
    )


def owner_edge(group, name, **kwargs):
    return member_edge(group, name, model=OwnershipEdge, **kwargs)


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
