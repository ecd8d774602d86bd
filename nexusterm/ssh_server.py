#!/usr/bin/env python3
"""
SSH Terminal Server - Main Entry Point
Serves one emulated HackNexus terminal per SSH session
"""

import paramiko
import socket
import threading
import logging
import os
import sys
import time
import hashlib
import random
from typing import Dict, Optional

from nexusterm.emulator import CommandEmulator
from nexusterm.shell import TerminalSession, format_result

logger = logging.getLogger(__name__)

SERVER_BANNER = "SSH-2.0-OpenSSH_8.9p1 HackNexus"


class TerminalSSHServer(paramiko.ServerInterface):
    """SSH server interface: accepts any login and records the requested channel mode"""

    def __init__(self, client_ip: str):
        self.client_ip = client_ip
        self.event = threading.Event()
        self.username: Optional[str] = None
        self.exec_command: Optional[str] = None
        self.term = 'xterm'
        self.term_width = 80
        self.term_height = 24

    def check_channel_request(self, kind: str, chanid: int) -> int:
        """Accept session channel requests"""
        if kind == 'session':
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def check_auth_password(self, username: str, password: str) -> int:
        """Practice terminals accept every password"""
        self.username = username
        logger.info(f"Password login from {self.client_ip} as {username}")
        return paramiko.AUTH_SUCCESSFUL

    def check_auth_publickey(self, username: str, key: paramiko.PKey) -> int:
        """Accept public keys, logging their fingerprint"""
        self.username = username
        key_fingerprint = hashlib.md5(key.asbytes()).hexdigest()
        logger.info(f"Public key login from {self.client_ip} as {username} (fp: {key_fingerprint})")
        return paramiko.AUTH_SUCCESSFUL

    def get_allowed_auths(self, username: str) -> str:
        return 'password,publickey'

    def check_channel_shell_request(self, channel: paramiko.Channel) -> bool:
        self.event.set()
        return True

    def check_channel_exec_request(self, channel: paramiko.Channel, command: bytes) -> bool:
        """Run a single command (ssh host 'ls -la') instead of an interactive shell"""
        self.exec_command = command.decode('utf-8', errors='ignore')
        self.event.set()
        return True

    def check_channel_pty_request(self, channel: paramiko.Channel, term: bytes,
                                  width: int, height: int, pixelwidth: int,
                                  pixelheight: int, modes: bytes) -> bool:
        """Accept PTY requests and store terminal info"""
        self.term = term
        self.term_width = width
        self.term_height = height
        return True


class SSHTerminalServer:
    """Threaded SSH server handing every connection its own terminal"""

    def __init__(self, host: str = '0.0.0.0', port: int = 2222,
                 key_file: str = '/app/config/host_key_rsa'):
        self.host = host
        self.port = port
        self.key_file = key_file
        self.server_socket = None
        self.running = False
        self.active_sessions: Dict[str, threading.Thread] = {}

        self._setup_host_key()

    def _setup_host_key(self):
        """Generate or load RSA host key"""
        if not os.path.exists(self.key_file):
            logger.info("Generating new host key...")
            key = paramiko.RSAKey.generate(2048)
            key_dir = os.path.dirname(self.key_file)
            if key_dir:
                os.makedirs(key_dir, exist_ok=True)
            key.write_private_key_file(self.key_file)
            logger.info(f"Host key saved to {self.key_file}")
        else:
            logger.info(f"Loading existing host key from {self.key_file}")

    @staticmethod
    def new_session_id(client_ip: str) -> str:
        return hashlib.sha256(
            f"{client_ip}:{time.time()}:{random.randint(0, 1000000)}".encode()
        ).hexdigest()[:16]

    def handle_client(self, client_socket: socket.socket, client_ip: str, client_port: int):
        """Handle individual client connections"""
        logger.info(f"New connection from {client_ip}:{client_port}")

        transport = None
        try:
            transport = paramiko.Transport(client_socket)
            transport.local_version = SERVER_BANNER
            transport.add_server_key(paramiko.RSAKey(filename=self.key_file))

            server = TerminalSSHServer(client_ip)
            transport.start_server(server=server)

            channel = transport.accept(30)
            if channel is None:
                logger.warning(f"No channel established for {client_ip}")
                return

            server.event.wait(10)
            if not server.event.is_set():
                logger.warning(f"No shell request from {client_ip}")
                channel.close()
                return

            session_id = self.new_session_id(client_ip)
            emulator = CommandEmulator()

            if server.exec_command is not None:
                logger.info(f"Session {session_id}: exec {server.exec_command!r} for {client_ip}")
                result = emulator.execute_command(server.exec_command)
                channel.send(format_result(result).encode('utf-8'))
                channel.send_exit_status(result.exit_code)
                channel.close()
                return

            session = TerminalSession(
                channel=channel,
                session_id=session_id,
                username=server.username or 'root',
                emulator=emulator
            )

            logger.info(f"Starting terminal session {session_id} for {client_ip}")
            session.run()

        except Exception as e:
            logger.error(f"Error handling client {client_ip}: {e}")
        finally:
            if transport:
                transport.close()
            try:
                client_socket.close()
            except OSError:
                pass
            self.active_sessions.pop(f"{client_ip}:{client_port}", None)

    def start(self):
        """Start the SSH terminal server"""
        self.running = True

        try:
            self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.server_socket.bind((self.host, self.port))
            self.server_socket.listen(100)

            logger.info(f"SSH terminal listening on {self.host}:{self.port}")

            while self.running:
                try:
                    client_socket, (client_ip, client_port) = self.server_socket.accept()

                    client_thread = threading.Thread(
                        target=self.handle_client,
                        args=(client_socket, client_ip, client_port),
                        daemon=True
                    )
                    self.active_sessions[f"{client_ip}:{client_port}"] = client_thread
                    client_thread.start()

                except Exception as e:
                    if self.running:
                        logger.error(f"Error accepting connection: {e}")

        except Exception as e:
            logger.error(f"Server error: {e}")
        finally:
            self.stop()

    def stop(self):
        """Stop the SSH terminal server"""
        if not self.running and self.server_socket is None:
            return
        logger.info("Stopping SSH terminal server...")
        self.running = False

        if self.server_socket:
            try:
                self.server_socket.close()
            except OSError:
                pass
            self.server_socket = None

        for session_key, thread in list(self.active_sessions.items()):
            logger.info(f"Waiting for session {session_key} to complete...")
            thread.join(timeout=5)

        logger.info("SSH terminal server stopped")


def configure_logging():
    """Log to stderr, and to NEXUSTERM_LOG_FILE when it is set"""
    handlers = [logging.StreamHandler()]
    log_file = os.getenv('NEXUSTERM_LOG_FILE')
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def main():
    """Main entry point"""
    import signal

    configure_logging()

    server = SSHTerminalServer(
        host=os.getenv('NEXUSTERM_HOST', '0.0.0.0'),
        port=int(os.getenv('NEXUSTERM_PORT', '2222')),
        key_file=os.getenv('NEXUSTERM_HOST_KEY', '/app/config/host_key_rsa')
    )

    def signal_handler(signum, frame):
        logger.info("Received shutdown signal")
        server.stop()
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    server.start()


if __name__ == '__main__':
    main()
