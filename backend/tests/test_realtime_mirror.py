import asyncio
from datetime import datetime

import pytest

from treinai.schemas import MessageOut, Role
from treinai.client.backend import Session
from treinai.client.chat import RealtimeMirror, ChatScreen, QUICK_INCENTIVES
from treinai.client.errors import BackendError, SendInProgress
from treinai.client.state import AppState, View


@pytest.fixture
def pair(fake_backend):
    trainer = fake_backend.add_profile(Role.TRAINER, "Carla")
    student = fake_backend.add_profile(Role.STUDENT, "Ana", trainer_id=trainer.id)
    other = fake_backend.add_profile(Role.STUDENT, "Beto", trainer_id=trainer.id)
    fake_backend.session = Session(access_token="t", user_id=trainer.id)
    return trainer, student, other


def _msg(fake, sender, receiver, content, at=None):
    return MessageOut(id=fake.next_id(), sender_id=sender.id, receiver_id=receiver.id,
                      content=content, created_at=at or fake.tick())


async def test_open_loads_history_in_order(fake_backend, pair):
    trainer, student, other = pair
    late = _msg(fake_backend, student, trainer, "segunda", datetime(2024, 1, 2))
    early = _msg(fake_backend, trainer, student, "primeira", datetime(2024, 1, 1))
    fake_backend.messages += [late, early, _msg(fake_backend, trainer, other, "outro par")]

    mirror = RealtimeMirror(fake_backend)
    await mirror.open(trainer.id, student.id)
    assert [m.content for m in mirror.messages] == ["primeira", "segunda"]


async def test_duplicate_delivery_is_idempotent(fake_backend, pair):
    trainer, student, _ = pair
    mirror = RealtimeMirror(fake_backend)
    await mirror.open(trainer.id, student.id)

    msg = _msg(fake_backend, student, trainer, "oi")
    fake_backend.push(msg)
    fake_backend.push(msg)
    assert mirror.accept(msg) is False
    assert [m.content for m in mirror.messages] == ["oi"]


async def test_other_pairs_are_ignored(fake_backend, pair):
    trainer, student, other = pair
    mirror = RealtimeMirror(fake_backend)
    await mirror.open(trainer.id, student.id)

    fake_backend.push(_msg(fake_backend, trainer, other, "para o Beto"))
    fake_backend.push(_msg(fake_backend, other, student, "entre alunos"))
    assert len(mirror) == 0


async def test_inserts_during_the_history_fetch_are_merged(fake_backend, pair):
    trainer, student, _ = pair
    old = _msg(fake_backend, student, trainer, "histórico")
    fake_backend.messages.append(old)
    fake_backend.gates["get_messages"] = gate = asyncio.Event()

    mirror = RealtimeMirror(fake_backend)
    opening = asyncio.create_task(mirror.open(trainer.id, student.id))
    while "get_messages" not in fake_backend.calls:
        await asyncio.sleep(0)

    fake_backend.push(_msg(fake_backend, student, trainer, "chegou agora"))
    fake_backend.push(old)
    gate.set()
    await opening

    assert [m.content for m in mirror.messages] == ["histórico", "chegou agora"]


async def test_switching_partner_cancels_the_old_subscription(fake_backend, pair):
    trainer, student, other = pair
    mirror = RealtimeMirror(fake_backend)
    await mirror.open(trainer.id, student.id)
    first_sub = fake_backend.subscriptions[0]

    await mirror.open(trainer.id, other.id)
    assert first_sub.active is False

    # handler antigo, ainda chamado por engano, não polui o novo par
    first_sub.callback(_msg(fake_backend, student, trainer, "atrasada").model_dump(mode="json"))
    fake_backend.push(_msg(fake_backend, other, trainer, "do Beto"))
    assert [m.content for m in mirror.messages] == ["do Beto"]


async def test_malformed_records_are_dropped(fake_backend, pair):
    trainer, student, _ = pair
    mirror = RealtimeMirror(fake_backend)
    await mirror.open(trainer.id, student.id)
    fake_backend.subscriptions[0].callback({"id": "x"})
    assert len(mirror) == 0


async def test_send_relies_on_the_realtime_echo(fake_backend, pair):
    trainer, student, _ = pair
    mirror = RealtimeMirror(fake_backend)
    await mirror.open(trainer.id, student.id)

    sent = await mirror.send("  Bora treinar!  ")
    assert sent.content == "Bora treinar!"
    assert [m.content for m in mirror.messages] == ["Bora treinar!"]

    assert await mirror.send("   ") is None
    assert fake_backend.calls.count("send_message") == 1


async def test_send_while_in_flight_is_refused(fake_backend, pair):
    trainer, student, _ = pair
    mirror = RealtimeMirror(fake_backend)
    await mirror.open(trainer.id, student.id)
    fake_backend.gates["send_message"] = gate = asyncio.Event()

    first = asyncio.create_task(mirror.send("um"))
    await asyncio.sleep(0)
    assert mirror.sending is True
    with pytest.raises(SendInProgress):
        await mirror.send("dois")
    gate.set()
    await first
    assert mirror.sending is False
    assert [m.content for m in mirror.messages] == ["um"]


async def test_send_failure_is_surfaced_without_retry(fake_backend, pair):
    trainer, student, _ = pair
    mirror = RealtimeMirror(fake_backend)
    await mirror.open(trainer.id, student.id)
    fake_backend.fail["send_message"] = BackendError("sem rede")

    assert await mirror.send("oi") is None
    assert mirror.error == "sem rede"
    assert fake_backend.calls.count("send_message") == 1
    assert len(mirror) == 0


async def test_async_with_closes_the_subscription(fake_backend, pair):
    trainer, student, _ = pair
    async with RealtimeMirror(fake_backend) as mirror:
        await mirror.open(trainer.id, student.id)
        sub = fake_backend.subscriptions[0]
        assert sub.active
    assert sub.active is False


async def test_student_chat_resolves_the_trainer(fake_backend, pair):
    trainer, student, _ = pair
    fake_backend.session = Session(access_token="t", user_id=student.id)
    state = AppState(current_view=View.CHAT, role=Role.STUDENT, user_id=student.id)

    screen = ChatScreen(fake_backend, state)
    await screen.enter()
    assert screen.partner_id == trainer.id
    assert screen.partner_name == "Carla"
    assert screen.quick_incentives == ()
    assert screen.mirror.pair == (student.id, trainer.id)
    await screen.exit()


async def test_trainer_name_falls_back_when_profile_fails(fake_backend, pair):
    trainer, student, _ = pair
    fake_backend.session = Session(access_token="t", user_id=student.id)
    fake_backend.fail["get_profile"] = BackendError("falhou")
    state = AppState(current_view=View.CHAT, role=Role.STUDENT, user_id=student.id)

    screen = ChatScreen(fake_backend, state)
    await screen.enter()
    assert screen.partner_name == "Meu Treinador"


async def test_trainer_chat_uses_the_selected_student(fake_backend, pair):
    trainer, student, _ = pair
    state = AppState(current_view=View.CHAT, role=Role.TRAINER, user_id=trainer.id,
                     selected_student_id=student.id)
    screen = ChatScreen(fake_backend, state)
    await screen.enter("Ana")
    assert (screen.partner_id, screen.partner_name) == (student.id, "Ana")
    assert screen.quick_incentives == QUICK_INCENTIVES

    await screen.send(QUICK_INCENTIVES[0])
    assert [m.content for m in screen.mirror.messages] == [QUICK_INCENTIVES[0]]
