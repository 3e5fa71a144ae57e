# =============================================================================
# File: tests/unit/test_payload_attributes.py
# Description: Declared payload accessors on event types
# =============================================================================

import copy
from datetime import date
from typing import List, Optional

import pytest
from pydantic import ValidationError

from eventcore.common.base.base_event import BaseEvent
from eventcore.common.exceptions.exceptions import EventImmutable
from eventcore.infra.event_store.payload_attributes import (
    PayloadAttribute,
    payload_attributes,
    register_payload_attribute,
)
from eventcore.user_account.events import UserCreated, UserDeleted, UserRenamed


class ProfileChanged(BaseEvent):
    nickname = PayloadAttribute(str)
    age = PayloadAttribute(int)
    birthday = PayloadAttribute(date)
    tags = PayloadAttribute(List[str])
    note = PayloadAttribute(Optional[str], key="remark")


class ProfileChangedWithSource(ProfileChanged):
    source = PayloadAttribute(str)


class ProfileNicknameChanged(ProfileChanged):
    nickname = PayloadAttribute(str)


def test_set_then_get_returns_value():
    event = ProfileChanged()
    event.nickname = "ally"
    event.age = 30
    event.tags = ["a", "b"]

    assert event.nickname == "ally"
    assert event.age == 30
    assert event.tags == ["a", "b"]


def test_values_are_stored_in_payload_in_json_form():
    event = ProfileChanged()
    event.birthday = date(1990, 5, 17)
    event.note = "hello"

    assert event.payload == {"birthday": "1990-05-17", "remark": "hello"}
    assert event.birthday == date(1990, 5, 17)


def test_values_are_coerced_to_declared_type():
    event = ProfileChanged()
    event.age = "42"

    assert event.age == 42
    assert event.payload["age"] == 42


def test_invalid_value_is_rejected_and_payload_untouched():
    event = ProfileChanged()
    with pytest.raises(ValidationError):
        event.age = "not a number"

    assert "age" not in event.payload


def test_unset_attribute_reads_none():
    event = ProfileChanged()
    assert event.nickname is None
    event.nickname = None
    assert event.payload == {"nickname": None}


def test_payload_given_at_construction_is_readable():
    event = ProfileChanged(payload={"nickname": "bo", "age": 7})
    assert event.nickname == "bo"
    assert event.age == 7


def test_undeclared_field_is_not_accessible():
    event = UserRenamed(payload={"name": "Bob", "email": "b@x.com"})

    with pytest.raises(AttributeError):
        _ = event.email
    # Extra payload keys stay in the payload map only
    assert event.payload["email"] == "b@x.com"


def test_declared_names_per_event_type():
    assert payload_attributes(UserCreated) == ("name", "email")
    assert payload_attributes(UserRenamed) == ("name",)
    assert payload_attributes(UserDeleted) == ("reason",)
    assert payload_attributes(ProfileChanged) == ("nickname", "age", "birthday", "tags", "remark")


def test_subclass_inherits_declared_attributes():
    names = payload_attributes(ProfileChangedWithSource)
    assert names[:5] == payload_attributes(ProfileChanged)
    assert names[-1] == "source"

    event = ProfileChangedWithSource()
    event.nickname = "x"
    event.source = "import"
    assert event.payload == {"nickname": "x", "source": "import"}


def test_reserved_name_cannot_be_declared():
    # type.__new__ wraps errors raised from __set_name__ in RuntimeError on older interpreters
    with pytest.raises((TypeError, RuntimeError)):
        class Broken(BaseEvent):
            payload_attr = PayloadAttribute(str, key="aggregate_ref")


def test_persisted_event_rejects_payload_writes():
    event = UserRenamed(payload={"name": "Bob"}, id=3, aggregate_ref=1)

    with pytest.raises(EventImmutable):
        event.name = "Carol"
    assert event.name == "Bob"


def test_subclass_redeclaring_attribute_lists_it_once():
    assert payload_attributes(ProfileNicknameChanged) == payload_attributes(ProfileChanged)

    event = ProfileNicknameChanged()
    event.nickname = "neo"
    assert event.payload == {"nickname": "neo"}


def test_registering_same_name_twice_keeps_one_entry():
    class AddressChanged(BaseEvent):
        pass

    register_payload_attribute(AddressChanged, "name")
    assert register_payload_attribute(AddressChanged, "name") == ["name"]
    assert payload_attributes(AddressChanged) == ("name",)


def test_persisted_event_payload_rejects_in_place_writes():
    event = ProfileChanged(payload={"nickname": "neo", "tags": ["a"]}, id=5)

    with pytest.raises(EventImmutable):
        event.payload["nickname"] = "smith"
    with pytest.raises(EventImmutable):
        event.payload.pop("nickname")
    with pytest.raises(EventImmutable):
        event.payload.clear()
    with pytest.raises(AttributeError):
        event.payload["tags"].append("b")

    assert event.nickname == "neo"
    assert event.tags == ["a"]


def test_nested_payload_maps_are_read_only():
    event = BaseEvent(payload={"address": {"city": "Oslo"}}, id=5)

    with pytest.raises(EventImmutable):
        event.payload["address"]["city"] = "Bergen"
    assert event.payload == {"address": {"city": "Oslo"}}


def test_copies_of_persisted_event_stay_read_only():
    event = UserRenamed(payload={"name": "Bob"}, id=3, aggregate_ref=1)

    for payload in (copy.copy(event.payload), copy.deepcopy(event).payload):
        assert payload == {"name": "Bob"}
        with pytest.raises(EventImmutable):
            payload["name"] = "Carol"


def test_clearing_identity_makes_payload_writable_again():
    event = UserRenamed(payload={"name": "Bob"}, id=3, aggregate_ref=1)

    event.id = None
    event.name = "Carol"

    assert event.payload == {"name": "Carol"}
