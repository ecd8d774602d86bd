#!/usr/bin/env python3
"""
Terminal Session - Interactive bash-like line editor driving a command emulator
"""

import codecs
import logging
from datetime import datetime
from typing import Optional

from nexusterm.emulator import HOSTNAME, CommandEmulator, CommandResult
from nexusterm.filesystem import FileNode

logger = logging.getLogger(__name__)

CLEAR_SCREEN = '\033[2J\033[H'


class TerminalSession:
    """One terminal window: a channel, a prompt and its own emulator"""

    def __init__(self, channel, session_id: str, username: str = 'root',
                 emulator: Optional[CommandEmulator] = None):
        self.channel = channel
        self.session_id = session_id
        self.username = username
        self.emulator = emulator if emulator is not None else CommandEmulator()
        self.running = True
        self.commands_run = 0
        self.session_start = datetime.now()
        # Multi-byte characters arrive one byte per recv(1)
        self.decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')

    def send(self, data: str):
        """Send data to the client"""
        try:
            self.channel.send(data.encode('utf-8'))
        except (OSError, EOFError) as e:
            logger.warning(f"Session {self.session_id}: send failed: {e}")
            self.running = False

    def recv(self, size: int = 1) -> str:
        """Receive data from the client, returning '' only at end of stream"""
        text = ''
        while not text:
            try:
                data = self.channel.recv(size)
            except (OSError, EOFError) as e:
                logger.warning(f"Session {self.session_id}: receive failed: {e}")
                self.running = False
                return ''
            if not data:
                return self.decoder.decode(b'', final=True)
            text = self.decoder.decode(data)
        return text

    def get_prompt(self) -> str:
        """Generate bash prompt"""
        return f"root@{HOSTNAME}:{self.emulator.get_current_path()}# "

    def send_welcome(self):
        """Send the message of the day from /etc/motd when it exists"""
        self.send('\r\n')
        motd = self.emulator.get_node_at_path(['etc', 'motd'])
        if isinstance(motd, FileNode) and motd.content:
            self.send(motd.content.replace('\n', '\r\n') + '\r\n\r\n')

    def execute_command(self, command_line: str) -> str:
        """Execute a command and return the text to send back"""
        parts = command_line.split()
        if not parts:
            return ''

        # Screen and session control belong to the terminal, not the emulator
        if parts[0] == 'clear':
            return CLEAR_SCREEN
        if parts[0] in ('exit', 'logout'):
            self.running = False
            return 'logout\r\n'

        self.commands_run += 1
        result = self.emulator.execute_command(command_line)
        return format_result(result)

    def run(self):
        """Main shell loop"""
        try:
            self.send_welcome()

            while self.running:
                self.send(self.get_prompt())

                command_line = ''
                while True:
                    char = self.recv(1)

                    if not char:
                        self.running = False
                        break

                    if char == '\r' or char == '\n':
                        self.send('\r\n')
                        break
                    elif char == '\x7f' or char == '\x08':  # Backspace
                        if command_line:
                            command_line = command_line[:-1]
                            self.send('\x08 \x08')
                    elif char == '\x03':  # Ctrl+C
                        self.send('^C\r\n')
                        command_line = ''
                        break
                    elif char == '\x04':  # Ctrl+D
                        if not command_line:
                            self.running = False
                            break
                    elif char == '\x15':  # Ctrl+U
                        self.send('\x08 \x08' * len(command_line))
                        command_line = ''
                    elif char == '\x0c':  # Ctrl+L
                        self.send(CLEAR_SCREEN + self.get_prompt() + command_line)
                    elif ord(char) >= 32:
                        command_line += char
                        self.send(char)

                if not self.running:
                    break

                if command_line.strip():
                    output = self.execute_command(command_line)
                    if output:
                        self.send(output)

        except Exception as e:
            logger.error(f"Shell error in session {self.session_id}: {e}")
        finally:
            duration = (datetime.now() - self.session_start).total_seconds()
            logger.info(f"Session {self.session_id} closed after {self.commands_run} commands, {duration:.2f}s")
            try:
                self.channel.close()
            except (OSError, EOFError):
                pass


def format_result(result: CommandResult) -> str:
    """Render a command result for a raw terminal, output first then error"""
    text = ''
    for block in (result.output, result.error):
        if block:
            text += block.replace('\n', '\r\n') + '\r\n'
    return text
