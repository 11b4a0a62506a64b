"""Tests for RCONService."""

import asyncio
import threading

import pytest
from conftest import FakeMCRcon, FakeRconFactory

from errors import RconNotConnectedError, RconTransportError
from services.rcon import ConnectionState, PlayerList, RCONService, parse_player_list


def make_service(factory, **kwargs) -> RCONService:
    kwargs.setdefault("retry_delay", 0.01)
    kwargs.setdefault("max_retry_delay", 0.05)
    return RCONService("127.0.0.1", 25575, "secret", rcon_factory=factory, **kwargs)


class TestParsePlayerList:
    def test_players_online(self):
        result = parse_player_list("There are 2 of a max of 20 players online: Alice, Bob")
        assert result == PlayerList(count="2", max="20", users=["Alice", "Bob"])

    def test_nobody_online(self):
        result = parse_player_list("There are 0 of a max of 20 players online: ")
        assert result == PlayerList(count="0", max="20", users=[])

    def test_nobody_online_without_trailing_space(self):
        result = parse_player_list("There are 0 of a max of 20 players online:")
        assert result is not None
        assert result.users == []

    def test_unexpected_reply(self):
        assert parse_player_list("Unknown command") is None


class TestConnection:
    @pytest.mark.asyncio
    async def test_send_while_disconnected_does_not_touch_network(self):
        factory = FakeRconFactory()
        service = make_service(factory)

        with pytest.raises(RconNotConnectedError):
            await service.send("list")

        assert factory.clients == []
        assert service.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_launch_and_send(self):
        factory = FakeRconFactory(replies={"list": "There are 0 of a max of 20 players online: "})
        service = make_service(factory)

        assert await service.launch()
        assert service.state is ConnectionState.CONNECTED

        reply = await service.send("list")

        assert reply == "There are 0 of a max of 20 players online: "
        assert factory.clients[0].commands == ["list"]
        await service.stop()

    @pytest.mark.asyncio
    async def test_launch_failure_stays_disconnected_and_retries(self):
        factory = FakeRconFactory(failures=1)
        service = make_service(factory)

        assert not await service.launch()
        assert service.state is ConnectionState.DISCONNECTED

        for _ in range(50):
            if service.is_connected:
                break
            await asyncio.sleep(0.01)

        assert service.is_connected
        assert len(factory.clients) == 2
        await service.stop()

    @pytest.mark.asyncio
    async def test_transport_error_disconnects_and_schedules_reconnect(self):
        factory = FakeRconFactory()
        service = make_service(factory, retry_delay=10)
        await service.launch()
        factory.clients[0].fail_command = True

        with pytest.raises(RconTransportError):
            await service.send("say hi")

        assert service.state is ConnectionState.DISCONNECTED
        assert service._retry_task is not None

        with pytest.raises(RconNotConnectedError):
            await service.send("say hi again")

        await service.stop()
        assert service._retry_task is None

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        factory = FakeRconFactory()
        service = make_service(factory)
        await service.launch()

        await service.stop()
        await service.stop()

        assert service.state is ConnectionState.DISCONNECTED
        assert not factory.clients[0].connected

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_reconnect(self):
        factory = FakeRconFactory(failures=5)
        service = make_service(factory, retry_delay=0.05)
        await service.launch()

        await service.stop()
        await asyncio.sleep(0.1)

        assert len(factory.clients) == 1
        assert not service.is_connected

    @pytest.mark.asyncio
    async def test_backoff_doubles_up_to_maximum(self):
        factory = FakeRconFactory(failures=10)
        service = make_service(factory, retry_delay=10, max_retry_delay=25)

        await service.launch()
        assert service._next_delay == 20
        service._retry_task.cancel()
        service._retry_task = None

        await service.launch()
        assert service._next_delay == 25

        await service.stop()


    @pytest.mark.asyncio
    async def test_failed_login_closes_the_client(self):
        factory = FakeRconFactory(failures=1)
        service = make_service(factory, retry_delay=10)

        assert not await service.launch()

        assert factory.clients[0].disconnect_calls == 1
        await service.stop()

    @pytest.mark.asyncio
    async def test_unresponsive_server_times_out(self):
        released = threading.Event()

        class HangingSocket:
            def shutdown(self, how):
                released.set()

        class HangingRcon(FakeMCRcon):
            def connect(self):
                self.socket = HangingSocket()
                released.wait(5)
                raise ConnectionResetError("closed while waiting for login")

        clients = []

        def factory(host, password, port=25575, timeout=5):
            clients.append(HangingRcon(host, password, port=port, timeout=timeout))
            return clients[-1]

        service = make_service(factory, timeout=0.1, retry_delay=10)

        assert not await service.launch()

        assert released.is_set()
        assert service.state is ConnectionState.DISCONNECTED
        for _ in range(50):
            if clients[0].disconnect_calls:
                break
            await asyncio.sleep(0.01)
        assert clients[0].disconnect_calls == 1
        await service.stop()


class TestPlayerList:
    @pytest.mark.asyncio
    async def test_get_player_list(self):
        factory = FakeRconFactory(replies={"list": "There are 1 of a max of 10 players online: Alice"})
        service = make_service(factory)
        await service.launch()

        players = await service.get_player_list()

        assert players == PlayerList(count="1", max="10", users=["Alice"])
        await service.stop()

    @pytest.mark.asyncio
    async def test_get_player_list_offline(self):
        service = make_service(FakeRconFactory())
        assert await service.get_player_list() is None
