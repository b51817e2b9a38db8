"""
Operator console tests.
"""

import io

from securerelay.server.console import OperatorConsole


class FakeConnection:
    client_id = "test"


def make_console(registry, commands=""):
    requests = []
    output = io.StringIO()
    console = OperatorConsole(registry, lambda: requests.append(True),
                              stdin=io.StringIO(commands), stdout=output)
    return console, output, requests


def test_clients_with_empty_registry(registry):
    console, output, _ = make_console(registry, "/clients\n")
    console.run()

    assert output.getvalue() == "No clients connected.\n"


def test_clients_lists_registered_nicknames(registry):
    registry.register("alice", FakeConnection())
    registry.register("bob", FakeConnection())
    console, output, _ = make_console(registry, "/clients\n")
    console.run()

    assert output.getvalue().splitlines() == ["Connected clients:", "- alice", "- bob"]


def test_unknown_command(registry):
    console, output, requests = make_console(registry, "/kick bob\n")
    console.run()

    assert output.getvalue() == "Unknown command. Available commands: /clients, /quit\n"
    assert requests == []


def test_blank_line_is_reported_as_unknown(registry):
    console, output, requests = make_console(registry, "\n   \n")
    console.run()

    assert output.getvalue().splitlines() == ["Unknown command. Available commands: /clients, /quit"] * 2
    assert requests == []


def test_quit_requests_shutdown_without_touching_registry(registry):
    registry.register("alice", FakeConnection())
    console, output, requests = make_console(registry, "/quit\n")
    console.run()

    assert requests == [True]
    assert "Shutting down server..." in output.getvalue()
    assert registry.nicknames() == ["alice"]


def test_start_runs_in_background_thread(registry):
    console, output, _ = make_console(registry, "/clients\n")
    thread = console.start()
    thread.join(2)

    assert not thread.is_alive()
    assert thread.daemon
    assert output.getvalue() == "No clients connected.\n"
