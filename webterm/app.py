#!/usr/bin/env python3
"""
Web Terminal - JSON and WebSocket access to emulated HackNexus terminals
"""

import os
import time
import random
import hashlib
import logging
import threading
from typing import Callable, Dict, List, Optional

from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit

from nexusterm.emulator import CommandEmulator
from nexusterm.filesystem import load_filesystem_definition

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Flask app setup
app = Flask(__name__)
app.config['SECRET_KEY'] = os.getenv('FLASK_SECRET_KEY', 'webterm-secret-key')
socketio = SocketIO(app, cors_allowed_origins="*")


class TerminalRegistry:
    """Open terminals, each owning an independent emulator and filesystem"""

    def __init__(self, max_terminals: int = 100, idle_timeout: float = 3600,
                 clock: Callable[[], float] = time.monotonic):
        self.lock = threading.Lock()
        self.terminals: Dict[str, CommandEmulator] = {}
        self.last_used: Dict[str, float] = {}
        self.max_terminals = max_terminals
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._definition: Optional[Dict] = None

    def _get_definition(self) -> Dict:
        # build_filesystem only reads the definition
        if self._definition is None:
            self._definition = load_filesystem_definition()
        return self._definition

    def _discard(self, terminal_id: str, reason: str):
        # Caller holds the lock
        self.terminals.pop(terminal_id, None)
        self.last_used.pop(terminal_id, None)
        logger.info(f"Discarded terminal {terminal_id} ({reason})")

    def expire_idle(self) -> int:
        """Drop terminals unused for longer than the idle timeout"""
        cutoff = self.clock() - self.idle_timeout
        with self.lock:
            stale = [tid for tid, used in self.last_used.items() if used < cutoff]
            for terminal_id in stale:
                self._discard(terminal_id, 'idle')
        return len(stale)

    def spawn(self, terminal_id: Optional[str] = None) -> str:
        """Create a terminal and return its id, evicting the least recently used at capacity"""
        if terminal_id is None:
            terminal_id = 'terminal-' + hashlib.sha256(
                f"{time.time()}:{random.randint(0, 1000000)}".encode()
            ).hexdigest()[:16]

        self.expire_idle()
        emulator = CommandEmulator(self._get_definition())
        with self.lock:
            while self.last_used and len(self.terminals) >= self.max_terminals:
                oldest = min(self.last_used, key=self.last_used.get)
                self._discard(oldest, 'capacity')
            self.terminals[terminal_id] = emulator
            self.last_used[terminal_id] = self.clock()

        logger.info(f"Spawned terminal {terminal_id}")
        return terminal_id

    def get(self, terminal_id: str) -> Optional[CommandEmulator]:
        with self.lock:
            emulator = self.terminals.get(terminal_id)
            if emulator is not None:
                self.last_used[terminal_id] = self.clock()
            return emulator

    def close(self, terminal_id: str) -> bool:
        with self.lock:
            removed = self.terminals.pop(terminal_id, None)
            self.last_used.pop(terminal_id, None)
        if removed is not None:
            logger.info(f"Closed terminal {terminal_id}")
        return removed is not None

    def describe_all(self) -> List[Dict]:
        with self.lock:
            items = list(self.terminals.items())
        return [describe(terminal_id, emulator) for terminal_id, emulator in items]


def describe(terminal_id: str, emulator: CommandEmulator) -> Dict:
    return {'id': terminal_id, 'cwd': emulator.get_current_path()}


terminals = TerminalRegistry(
    max_terminals=int(os.getenv('WEBTERM_MAX_TERMINALS', '100')),
    idle_timeout=float(os.getenv('WEBTERM_IDLE_TIMEOUT', '3600'))
)


@app.route('/api/terminals', methods=['POST'])
def create_terminal():
    """Open a new terminal"""
    try:
        terminal_id = terminals.spawn()
        return jsonify(describe(terminal_id, terminals.get(terminal_id))), 201
    except Exception as e:
        logger.error(f"Error spawning terminal: {e}")
        return jsonify({'error': str(e)}), 500


@app.route('/api/terminals')
def list_terminals():
    """List open terminals"""
    return jsonify(terminals.describe_all())


@app.route('/api/terminals/<terminal_id>')
def get_terminal(terminal_id):
    """Current directory of a terminal, for prompt rendering"""
    emulator = terminals.get(terminal_id)
    if emulator is None:
        return jsonify({'error': 'terminal not found'}), 404
    return jsonify(describe(terminal_id, emulator))


@app.route('/api/terminals/<terminal_id>/execute', methods=['POST'])
def execute(terminal_id):
    """Run one command line on a terminal"""
    emulator = terminals.get(terminal_id)
    if emulator is None:
        return jsonify({'error': 'terminal not found'}), 404

    data = request.get_json(silent=True) or {}
    command = data.get('command')
    if not isinstance(command, str):
        return jsonify({'error': 'command required'}), 400

    result = emulator.execute_command(command)
    response = result.to_dict()
    response['cwd'] = emulator.get_current_path()
    return jsonify(response)


@app.route('/api/terminals/<terminal_id>', methods=['DELETE'])
def close_terminal(terminal_id):
    """Close a terminal and discard its filesystem"""
    if not terminals.close(terminal_id):
        return jsonify({'error': 'terminal not found'}), 404
    return '', 204


# WebSocket events
@socketio.on('connect')
def handle_connect(auth=None):
    """Give every socket its own terminal"""
    terminal_id = terminals.spawn(request.sid)
    logger.info(f"Client connected with terminal {terminal_id}")
    emit('ready', {'cwd': terminals.get(terminal_id).get_current_path()})


@socketio.on('command')
def handle_command(data):
    """Run a command line on the socket's terminal"""
    emulator = terminals.get(request.sid)
    if emulator is None:
        emit('result', {'output': '', 'error': 'terminal not found', 'exitCode': 1})
        return

    command = data.get('command') if isinstance(data, dict) else data
    if not isinstance(command, str):
        emit('result', {'output': '', 'error': 'command required', 'exitCode': 1})
        return

    response = emulator.execute_command(command).to_dict()
    response['cwd'] = emulator.get_current_path()
    emit('result', response)


@socketio.on('disconnect')
def handle_disconnect(reason=None):
    """Discard the socket's terminal"""
    terminals.close(request.sid)
    logger.info('Client disconnected from web terminal')


if __name__ == '__main__':
    socketio.run(
        app,
        host=os.getenv('WEBTERM_HOST', '0.0.0.0'),
        port=int(os.getenv('WEBTERM_PORT', '8080')),
        debug=os.getenv('FLASK_DEBUG', 'false').lower() == 'true'
    )
