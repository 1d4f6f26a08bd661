import pytest

from card_context import ContextManager, Scope
from card_errors import (
    CardConnectionError, ContextError, NoReadersFound, StatusError,
)
from card_readers import list_readers, pick_reader
from card_session import (
    CardSession, Disposition, Protocol, SessionState, ShareMode, as_protocol,
)
from fakes import ATR_ULTRALIGHT, FakeResourceManager


# ---------- context ----------
def test_establish_uses_system_scope_by_default(rm):
    ctx = ContextManager(rm).establish()
    assert rm.calls == [("establish_context", Scope.SYSTEM)]
    assert ctx.scope is Scope.SYSTEM
    assert not ctx.released


def test_establish_failure(rm):
    rm.fail("establish_context", 0x8010001D, "Service not available.")
    with pytest.raises(ContextError) as exc:
        ContextManager(rm).establish()
    assert exc.value.stage == "establish"


def test_release_once(rm):
    cm = ContextManager(rm, Scope.USER)
    ctx = cm.establish()
    cm.release(ctx)
    cm.release(ctx)
    assert rm.count("release_context") == 1
    assert ctx.released


def test_release_failure_reports_release_stage(rm):
    cm = ContextManager(rm)
    ctx = cm.establish()
    rm.fail("release_context")
    with pytest.raises(ContextError) as exc:
        cm.release(ctx)
    assert exc.value.stage == "release"
    cm.release(ctx)
    assert rm.count("release_context") == 1


def test_managed_releases_on_error(rm):
    with pytest.raises(RuntimeError):
        with ContextManager(rm).managed():
            raise RuntimeError("boom")
    assert rm.count("release_context") == 1


# ---------- readers ----------
def test_list_readers_keeps_order():
    rm = FakeResourceManager(readers=["Zeta 00", "Alpha 01"])
    ctx = ContextManager(rm).establish()
    assert list_readers(rm, ctx) == ("Zeta 00", "Alpha 01")


def test_list_readers_is_not_cached(rm, ctx):
    list_readers(rm, ctx)
    rm.readers.append("Second Reader 01")
    assert len(list_readers(rm, ctx)) == 2
    assert rm.count("list_readers") == 2


def test_no_readers(rm, ctx):
    rm.readers = []
    with pytest.raises(NoReadersFound):
        list_readers(rm, ctx)


def test_list_readers_error(rm, ctx):
    rm.fail("list_readers", 0x8010002E, "Cannot find a smart card reader.")
    with pytest.raises(NoReadersFound) as exc:
        list_readers(rm, ctx)
    assert exc.value.stage == "list-readers"


def test_pick_reader_prefers_acs():
    names = ("Generic CCID 00", "ACS ACR122U 01")
    assert pick_reader(names) == "ACS ACR122U 01"
    assert pick_reader(("Generic CCID 00", "Other 01")) == "Generic CCID 00"


def test_pick_reader_hint():
    names = ("ACS ACR122U 00", "Identiv uTrust 01")
    assert pick_reader(names, hint="utrust") == "Identiv uTrust 01"
    with pytest.raises(NoReadersFound):
        pick_reader(names, hint="omnikey")


# ---------- card session ----------
def test_connect_records_protocol(rm, ctx):
    session = CardSession(rm, ctx)
    conn = session.connect("ACS ACR122U PICC Interface 00 00")
    assert conn.protocol is Protocol.T1
    assert session.state is SessionState.CONNECTED
    _, handle, reader, share, mask = rm.calls[-1]
    assert share is ShareMode.SHARED
    assert mask == Protocol.T0 | Protocol.T1


def test_connect_with_unknown_protocol_is_undefined(ctx):
    rm = FakeResourceManager(protocol=0x10000)
    conn = CardSession(rm, ctx).connect("reader")
    assert conn.protocol is Protocol.UNDEFINED


def test_connect_without_card(rm, ctx):
    rm.fail("connect")
    session = CardSession(rm, ctx)
    with pytest.raises(CardConnectionError) as exc:
        session.connect("ACS ACR122U")
    assert exc.value.stage == "connect"
    assert session.state is SessionState.DISCONNECTED


@pytest.mark.parametrize("mask", [Protocol.UNDEFINED, 4, 7])
def test_connect_rejects_bad_mask_without_io(rm, ctx, mask):
    with pytest.raises(CardConnectionError) as exc:
        CardSession(rm, ctx).connect("ACS ACR122U", protocols=mask)
    assert exc.value.stage == "connect"
    assert rm.count("connect") == 0


def test_session_connects_once(rm, ctx):
    session = CardSession(rm, ctx)
    conn = session.connect("ACS ACR122U")
    with pytest.raises(CardConnectionError):
        session.connect("ACS ACR122U")
    session.disconnect(conn)
    with pytest.raises(CardConnectionError):
        session.connect("ACS ACR122U")
    assert session.state is SessionState.CLOSED


def test_disconnect_once(rm, ctx):
    session = CardSession(rm, ctx)
    conn = session.connect("ACS ACR122U")
    session.disconnect(conn, Disposition.RESET)
    session.disconnect(conn)
    assert rm.count("disconnect") == 1
    assert rm.calls[-1] == ("disconnect", conn.handle, Disposition.RESET)
    assert not conn.active


def test_status(rm, ctx):
    session = CardSession(rm, ctx)
    conn = session.connect("ACS ACR122U")
    st = session.status(conn)
    assert st.atr == ATR_ULTRALIGHT
    assert st.atr_hex().startswith("3B 8F 80 01")
    assert st.protocol is Protocol.T1
    assert rm.count("transmit") == 0


def test_status_on_stale_handle(rm, ctx):
    session = CardSession(rm, ctx)
    conn = session.connect("ACS ACR122U")
    session.disconnect(conn)
    with pytest.raises(StatusError):
        session.status(conn)
    assert rm.count("status") == 0


def test_status_rejects_oversized_atr(ctx):
    rm = FakeResourceManager(atr=bytes(34))
    session = CardSession(rm, ctx)
    with pytest.raises(StatusError):
        session.status(session.connect("reader"))


def test_as_protocol():
    assert as_protocol(1) is Protocol.T0
    assert as_protocol(2) is Protocol.T1
    assert as_protocol(3) is Protocol.UNDEFINED
    assert as_protocol(None) is Protocol.UNDEFINED
