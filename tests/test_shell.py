"""Tests for the interactive terminal session line editor."""

from nexusterm.emulator import CommandResult
from nexusterm.shell import CLEAR_SCREEN, TerminalSession, format_result


class FakeChannel:
    """Feeds scripted keystrokes and records what the session sends"""

    def __init__(self, keystrokes: bytes = b''):
        self.incoming = keystrokes
        self.sent = b''
        self.closed = False

    def recv(self, size):
        data, self.incoming = self.incoming[:size], self.incoming[size:]
        return data

    def send(self, data):
        self.sent += data
        return len(data)

    def close(self):
        self.closed = True

    @property
    def text(self):
        return self.sent.decode('utf-8')


class BrokenChannel(FakeChannel):
    def recv(self, size):
        raise OSError('connection reset')


def session_for(emulator, keystrokes: bytes):
    channel = FakeChannel(keystrokes)
    return TerminalSession(channel, 'test-session', emulator=emulator), channel


class TestRun:
    """Driving the session with keystrokes."""

    def test_pwd_then_exit(self, emulator) -> None:
        session, channel = session_for(emulator, b'pwd\rexit\r')
        session.run()

        assert 'root@hacknexus:~# ' in channel.text
        assert '/root\r\n' in channel.text
        assert channel.text.endswith('logout\r\n')
        assert channel.closed
        assert not session.running

    def test_prompt_follows_cd(self, emulator) -> None:
        session, channel = session_for(emulator, b'cd /etc\r')
        session.run()
        assert channel.text.endswith('root@hacknexus:/etc# ')

    def test_backspace_edits_the_line(self, emulator) -> None:
        session, channel = session_for(emulator, b'pwdx\x7f\r')
        session.run()
        assert '\x08 \x08' in channel.text
        assert '/root\r\n' in channel.text

    def test_ctrl_c_discards_the_line(self, emulator) -> None:
        session, channel = session_for(emulator, b'foo\x03pwd\r')
        session.run()
        assert '^C\r\n' in channel.text
        assert 'command not found' not in channel.text
        assert '/root\r\n' in channel.text

    def test_ctrl_d_on_empty_line_ends_session(self, emulator) -> None:
        session, channel = session_for(emulator, b'\x04pwd\r')
        session.run()
        assert channel.text.count('root@hacknexus:~# ') == 1
        assert '/root\r\n' not in channel.text
        assert channel.closed

    def test_ctrl_d_with_text_is_ignored(self, emulator) -> None:
        session, channel = session_for(emulator, b'pw\x04d\r')
        session.run()
        assert '/root\r\n' in channel.text

    def test_ctrl_u_erases_the_typed_line(self, emulator) -> None:
        session, channel = session_for(emulator, b'abc\x15pwd\r')
        session.run()
        assert 'root@hacknexus:~# abc' + '\x08 \x08' * 3 + 'pwd\r\n' in channel.text
        assert '/root\r\n' in channel.text
        assert 'command not found' not in channel.text

    def test_ctrl_l_clears_and_redraws_the_line(self, emulator) -> None:
        session, channel = session_for(emulator, b'pw\x0cd\r')
        session.run()
        assert CLEAR_SCREEN + 'root@hacknexus:~# pw' + 'd\r\n' in channel.text
        assert '/root\r\n' in channel.text

    def test_non_ascii_input_keeps_session_open(self, emulator) -> None:
        keystrokes = 'echo héllo > f.txt\rcat f.txt\rexit\r'.encode('utf-8')
        session, channel = session_for(emulator, keystrokes)
        session.run()
        assert 'héllo\r\n' in channel.text
        assert channel.text.endswith('logout\r\n')
        assert emulator.execute_command('cat f.txt').output == 'héllo'

    def test_split_character_is_reassembled(self, emulator) -> None:
        session, _ = session_for(emulator, 'é'.encode('utf-8'))
        assert session.recv(1) == 'é'
        assert session.recv(1) == ''

    def test_errors_are_written_to_the_terminal(self, emulator) -> None:
        session, channel = session_for(emulator, b'foobar\r')
        session.run()
        assert 'bash: foobar: command not found\r\n' in channel.text
        assert session.commands_run == 1

    def test_end_of_input_closes_session(self, emulator) -> None:
        session, channel = session_for(emulator, b'')
        session.run()
        assert channel.closed
        assert not session.running

    def test_receive_failure_stops_session(self, emulator) -> None:
        channel = BrokenChannel()
        session = TerminalSession(channel, 'broken', emulator=emulator)
        session.run()
        assert not session.running
        assert channel.closed


class TestSessionCommands:
    """Commands handled by the terminal itself."""

    def test_clear(self, emulator) -> None:
        session, _ = session_for(emulator, b'')
        assert session.execute_command('clear') == CLEAR_SCREEN

    def test_logout(self, emulator) -> None:
        session, _ = session_for(emulator, b'')
        assert session.execute_command('logout') == 'logout\r\n'
        assert not session.running

    def test_blank_line(self, emulator) -> None:
        session, _ = session_for(emulator, b'')
        assert session.execute_command('   ') == ''

    def test_welcome_shows_motd(self, emulator) -> None:
        session, channel = session_for(emulator, b'')
        session.send_welcome()
        assert channel.text.startswith('\r\nWelcome to HackNexus.\r\n\r\nPractice')
        assert channel.text.endswith('\r\n\r\n')

    def test_welcome_without_motd(self, emulator) -> None:
        emulator.execute_command('cd /etc')
        emulator.execute_command('rm motd')
        session, channel = session_for(emulator, b'')
        session.send_welcome()
        assert channel.text == '\r\n'


class TestFormatResult:
    """Raw terminal rendering of command results."""

    def test_output_lines_use_crlf(self) -> None:
        assert format_result(CommandResult('a\nb')) == 'a\r\nb\r\n'

    def test_error_follows_output(self) -> None:
        assert format_result(CommandResult('out', 'err', 1)) == 'out\r\nerr\r\n'

    def test_empty_result(self) -> None:
        assert format_result(CommandResult()) == ''
