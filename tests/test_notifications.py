from __future__ import annotations

from sqlalchemy import select

from rentflow.models import Notification
from rentflow.services.notifications import NotificationTemplate, notifier

TPL = NotificationTemplate(title="Hello", body="World")


def test_notify_skips_duplicates_and_none(db, world):
    sent = notifier.notify(
        db,
        [world.tenant.user_id, None, world.tenant.user_id, world.landlord.user_id],
        TPL,
        entity_id=7,
    )
    assert sent == 2
    rows = db.scalars(select(Notification)).all()
    assert {r.user_id for r in rows} == {world.tenant.user_id, world.landlord.user_id}
    assert {r.entity_id for r in rows} == {"7"}


def test_send_once_is_keyed_on_user_entity_and_title(db, world):
    assert notifier.send_once(db, user_id=world.tenant.user_id, entity_id=1, template=TPL) is not None
    assert notifier.send_once(db, user_id=world.tenant.user_id, entity_id=1, template=TPL) is None
    assert notifier.send_once(db, user_id=world.tenant.user_id, entity_id=2, template=TPL) is not None
    assert notifier.exists(db, user_id=world.tenant.user_id, entity_id="2", title="Hello")


def test_failed_write_does_not_stop_the_fan_out(db, world):
    # title is NOT NULL, so this insert fails.
    sent = notifier.notify(db, [world.tenant.user_id], NotificationTemplate(title=None, body="x"), entity_id=1)
    assert sent == 0
    assert notifier.notify(db, [world.tenant.user_id], TPL, entity_id=1) == 1
