#!/usr/bin/env python3
"""
Command Emulator - Executes shell commands against a virtual filesystem
"""

import random
import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple, Optional, Set

from nexusterm.filesystem import (
    DIRECTORY_SIZE,
    HOME,
    DirectoryNode,
    FileNode,
    FileSystemNode,
    VirtualFilesystem,
    display_path,
    format_path,
    make_metadata,
    resolve_path,
)
from nexusterm.permissions import (
    FileMetadata,
    default_directory_permissions,
    format_date,
    format_permission_string,
)

logger = logging.getLogger(__name__)

HOSTNAME = 'hacknexus'
TERMINAL_WIDTH = 80
MAX_COLUMN_WIDTH = 20
# ls prints everything on one line up to this many entries
SINGLE_LINE_ENTRIES = 10

QUOTES = '\'"'


class CommandResult(NamedTuple):
    """Outcome of a single command: text, optional error text and exit code"""
    output: str = ''
    error: Optional[str] = None
    exit_code: int = 0

    def to_dict(self) -> Dict:
        data = {'output': self.output, 'exitCode': self.exit_code}
        if self.error is not None:
            data['error'] = self.error
        return data


def failure(error: str, exit_code: int = 1) -> CommandResult:
    return CommandResult(output='', error=error, exit_code=exit_code)


def parse_flags(args: List[str]) -> Set[str]:
    """Collect flag characters, so -la, -al and -l -a all give {'l', 'a'}"""
    flags = set()
    for arg in args:
        if arg.startswith('-') and len(arg) > 1:
            flags.update(arg[1:])
    return flags


def operands(args: List[str]) -> List[str]:
    """Arguments that are not flags"""
    return [arg for arg in args if not (arg.startswith('-') and len(arg) > 1)]


def strip_quotes(text: str) -> str:
    """Remove one leading and one trailing quote character"""
    if text and text[0] in QUOTES:
        text = text[1:]
    if text and text[-1] in QUOTES:
        text = text[:-1]
    return text


class CommandEmulator:
    """Emulates a small set of Unix commands for one terminal"""

    def __init__(self, definition: Optional[Dict] = None,
                 rng: Optional[random.Random] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or datetime.now
        self.fs = VirtualFilesystem(definition, rng=rng, now=self.clock())
        self.cwd: List[str] = list(HOME)

    def resolve_path(self, path: str) -> List[str]:
        return resolve_path(path, self.cwd)

    def get_node_at_path(self, segments: List[str]) -> Optional[FileSystemNode]:
        return self.fs.get_node(segments)

    def get_current_path(self) -> str:
        """Current directory for the prompt, with /root shown as ~"""
        return display_path(self.cwd)

    def execute_command(self, command_line: str) -> CommandResult:
        """Execute a command line and return its result"""
        parts = command_line.split()
        if not parts:
            return CommandResult()

        command, args = parts[0], parts[1:]
        logger.debug(f"Executing {command!r} with args {args} in {format_path(self.cwd)}")

        if command == 'echo':
            return self._cmd_echo(args, command_line)
        return self._handle_command(command, args)

    def _handle_command(self, command: str, args: List[str]) -> CommandResult:
        handlers = {
            'ls': self._cmd_ls,
            'cd': self._cmd_cd,
            'pwd': self._cmd_pwd,
            'cat': self._cmd_cat,
            'mkdir': self._cmd_mkdir,
            'rmdir': self._cmd_rmdir,
            'rm': self._cmd_rm,
            'cp': self._cmd_cp,
            'mv': self._cmd_mv,
            'whoami': self._cmd_whoami,
            'id': self._cmd_id,
            'hostname': self._cmd_hostname,
            'uname': self._cmd_uname,
            'date': self._cmd_date,
            'uptime': self._cmd_uptime,
            'df': self._cmd_df,
            'free': self._cmd_free,
            'ps': self._cmd_ps,
            'env': self._cmd_env,
            'history': self._cmd_history,
            'help': self._cmd_help,
        }

        handler = handlers.get(command)
        if handler:
            return handler(args)

        logger.debug(f"Unknown command: {command}")
        return failure(f"bash: {command}: command not found", 127)

    def _current_directory(self) -> Optional[DirectoryNode]:
        return self.fs.get_directory(self.cwd)

    def _new_metadata(self, name: str, is_directory: bool, size: int = 0) -> FileMetadata:
        path = format_path(self.cwd + [name])
        return make_metadata(path, is_directory, DIRECTORY_SIZE if is_directory else size, self.clock())

    # Filesystem commands
    def _cmd_ls(self, args: List[str]) -> CommandResult:
        """List directory contents"""
        flags = parse_flags(args)
        long_format = 'l' in flags
        show_all = 'a' in flags
        almost_all = 'A' in flags

        paths = operands(args)
        target = paths[0] if paths else '.'
        segments = self.resolve_path(target)

        node = self.get_node_at_path(segments)
        if node is None:
            return failure(f"ls: cannot access '{target}': No such file or directory", 2)

        if isinstance(node, FileNode):
            name = segments[-1]
            if not long_format:
                return CommandResult(name)
            meta = node.metadata
            perms = format_permission_string(meta.permissions, False)
            date = format_date(meta.modified, self.clock())
            return CommandResult(
                f"{perms} {meta.link_count} {meta.owner} {meta.group} {meta.size:>8} {date} {name}"
            )

        entries = list(node.children)
        if show_all:
            entries = ['.', '..'] + entries
        elif not almost_all:
            entries = [name for name in entries if not name.startswith('.')]

        entries.sort(key=lambda name: self._sort_key(node, name))

        if long_format:
            lines = [self._long_entry(node, name) for name in entries]
            return CommandResult('\n'.join(lines))

        return CommandResult(self._columns(entries))

    def _sort_key(self, directory: DirectoryNode, name: str):
        """. and .. first, then directories, then files, alphabetically"""
        if name in ('.', '..'):
            return (0, len(name))
        child = directory.children[name]
        return (1, 0 if child.is_directory else 1, name.lower(), name.swapcase())

    def _long_entry(self, directory: DirectoryNode, name: str) -> str:
        if name == '.':
            meta = directory.metadata
            is_directory = True
        elif name == '..':
            now = self.clock()
            meta = FileMetadata(default_directory_permissions(), 'root', 'root',
                                DIRECTORY_SIZE, now, now, link_count=2)
            is_directory = True
        else:
            child = directory.children[name]
            meta = child.metadata
            is_directory = child.is_directory

        perms = format_permission_string(meta.permissions, is_directory)
        date = format_date(meta.modified, self.clock())
        return (f"{perms} {meta.link_count:>2} {meta.owner:<8} {meta.group:<8} "
                f"{meta.size:>8} {date} {name}")

    def _columns(self, entries: List[str]) -> str:
        if len(entries) <= SINGLE_LINE_ENTRIES:
            return '  '.join(entries)

        max_name_length = max(len(name) for name in entries)
        column_width = min(max_name_length + 2, MAX_COLUMN_WIDTH)
        columns_per_row = TERMINAL_WIDTH // column_width

        rows = []
        for i in range(0, len(entries), columns_per_row):
            rows.append('  '.join(entries[i:i + columns_per_row]))
        return '\n'.join(rows)

    def _cmd_cd(self, args: List[str]) -> CommandResult:
        """Change directory"""
        target = args[0] if args else '~'
        segments = self.resolve_path(target)

        node = self.get_node_at_path(segments)
        if node is None:
            return failure(f"bash: cd: {target}: No such file or directory")
        if not node.is_directory:
            return failure(f"bash: cd: {target}: Not a directory")

        self.cwd = segments
        return CommandResult()

    def _cmd_pwd(self, args: List[str]) -> CommandResult:
        """Print working directory"""
        return CommandResult(format_path(self.cwd))

    def _cmd_cat(self, args: List[str]) -> CommandResult:
        """Print a file"""
        paths = operands(args)
        if not paths:
            return failure('cat: missing file argument')

        target = paths[0]
        node = self.get_node_at_path(self.resolve_path(target))
        if node is None:
            return failure(f"cat: {target}: No such file or directory")
        if not isinstance(node, FileNode):
            return failure(f"cat: {target}: Is a directory")

        return CommandResult(node.content)

    def _cmd_mkdir(self, args: List[str]) -> CommandResult:
        """Make a directory in the current directory"""
        names = operands(args)
        if not names:
            return failure('mkdir: missing operand')

        name = names[0]
        current = self._current_directory()
        if current is None:
            return failure('mkdir: cannot create directory')
        if name in current.children:
            return failure(f"mkdir: cannot create directory '{name}': File exists")

        current.children[name] = DirectoryNode(self._new_metadata(name, True))
        return CommandResult()

    def _cmd_rmdir(self, args: List[str]) -> CommandResult:
        """Remove an empty directory"""
        names = operands(args)
        if not names:
            return failure('rmdir: missing operand')

        name = names[0]
        current = self._current_directory()
        if current is None:
            return failure('rmdir: failed to remove directory')

        target = current.children.get(name)
        if target is None:
            return failure(f"rmdir: failed to remove '{name}': No such file or directory")
        if not isinstance(target, DirectoryNode):
            return failure(f"rmdir: failed to remove '{name}': Not a directory")
        if target.children:
            return failure(f"rmdir: failed to remove '{name}': Directory not empty")

        del current.children[name]
        return CommandResult()

    def _cmd_rm(self, args: List[str]) -> CommandResult:
        """Remove entries from the current directory"""
        names = operands(args)
        if not names:
            return failure('rm: missing operand')

        current = self._current_directory()
        if current is None:
            return failure('rm: cannot remove file')

        errors = []
        for name in names:
            if name not in current.children:
                errors.append(f"rm: cannot remove '{name}': No such file or directory")
                continue
            del current.children[name]

        if errors:
            return failure('\n'.join(errors))
        return CommandResult()

    def _cmd_cp(self, args: List[str]) -> CommandResult:
        """Copy a file within the current directory"""
        names = operands(args)
        if len(names) < 2:
            return failure('cp: missing file operand')

        source, dest = names[0], names[1]
        current = self._current_directory()
        if current is None:
            return failure('cp: cannot copy file')

        node = current.children.get(source)
        if node is None:
            return failure(f"cp: cannot stat '{source}': No such file or directory")

        # Directories are not copied
        if isinstance(node, FileNode):
            current.children[dest] = FileNode(node.metadata.copy(), node.content)
        return CommandResult()

    def _cmd_mv(self, args: List[str]) -> CommandResult:
        """Move or rename an entry in the current directory"""
        names = operands(args)
        if len(names) < 2:
            return failure('mv: missing file operand')

        source, dest = names[0], names[1]
        current = self._current_directory()
        if current is None:
            return failure('mv: cannot move file')

        node = current.children.get(source)
        if node is None:
            return failure(f"mv: cannot stat '{source}': No such file or directory")

        if source != dest:
            current.children[dest] = node
            del current.children[source]
        return CommandResult()

    def _cmd_echo(self, args: List[str], command_line: str) -> CommandResult:
        """Display a line of text, or write it to a file with >"""
        if '>' not in command_line:
            return CommandResult(strip_quotes(' '.join(args)))

        text, _, target = command_line.partition('>')
        content = strip_quotes(text.strip()[len('echo'):].strip())
        file_name = target.strip()

        if not file_name:
            return failure("bash: syntax error near unexpected token `newline'", 2)
        # Appending (>>) is not supported
        if file_name.startswith('>'):
            return failure("bash: syntax error near unexpected token `>'", 2)

        current = self._current_directory()
        if current is None:
            return failure(f"bash: {file_name}: No such file or directory")
        if isinstance(current.children.get(file_name), DirectoryNode):
            return failure(f"bash: {file_name}: Is a directory")

        current.children[file_name] = FileNode(
            self._new_metadata(file_name, False, len(content)), content
        )
        return CommandResult()

    # System information
    def _cmd_whoami(self, args: List[str]) -> CommandResult:
        return CommandResult('root')

    def _cmd_id(self, args: List[str]) -> CommandResult:
        return CommandResult('uid=0(root) gid=0(root) groups=0(root)')

    def _cmd_hostname(self, args: List[str]) -> CommandResult:
        return CommandResult(HOSTNAME)

    def _cmd_uname(self, args: List[str]) -> CommandResult:
        """Print system information"""
        if 'a' in parse_flags(args):
            return CommandResult(f'Linux {HOSTNAME} 5.15.0-hacknexus #1 SMP x86_64 GNU/Linux')
        return CommandResult('Linux')

    def _cmd_date(self, args: List[str]) -> CommandResult:
        return CommandResult(self.clock().astimezone().strftime('%a %b %d %H:%M:%S %Z %Y'))

    def _cmd_uptime(self, args: List[str]) -> CommandResult:
        return CommandResult(' 23:55:01 up 1 day, 2:30, 1 user, load average: 0.15, 0.10, 0.05')

    def _cmd_df(self, args: List[str]) -> CommandResult:
        """Report file system disk space usage"""
        output = [
            'Filesystem     1K-blocks    Used Available Use% Mounted on',
            '/dev/sda1       41943040 8482304  31315392  22% /',
            'tmpfs            4024288       0   4024288   0% /dev/shm',
            'tmpfs            4024288    1216   4023072   1% /run',
            '/dev/sda2      102400000 5242880  97157120   6% /home',
        ]
        return CommandResult('\n'.join(output))

    def _cmd_free(self, args: List[str]) -> CommandResult:
        """Display amount of free and used memory"""
        output = [
            '              total        used        free      shared  buff/cache   available',
            'Mem:        8048576     2048512     3024512      102400     2975552     5012345',
            'Swap:       2097152           0     2097152',
        ]
        return CommandResult('\n'.join(output))

    def _cmd_ps(self, args: List[str]) -> CommandResult:
        """Report process status"""
        processes = [
            '  PID TTY          TIME CMD',
            '    1 ?        00:00:01 systemd',
            '    2 ?        00:00:00 kthreadd',
            '  123 pts/0    00:00:00 bash',
            '  456 pts/0    00:00:00 ps',
        ]
        return CommandResult('\n'.join(processes))

    def _cmd_env(self, args: List[str]) -> CommandResult:
        """Print environment"""
        env_vars = [
            'PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin',
            'HOME=/root',
            'USER=root',
            'SHELL=/bin/bash',
            'PWD=' + format_path(self.cwd),
            'TERM=xterm-256color',
            'LANG=en_US.UTF-8',
            'HOSTNAME=' + HOSTNAME,
        ]
        return CommandResult('\n'.join(env_vars))

    def _cmd_history(self, args: List[str]) -> CommandResult:
        return CommandResult('1  ls\n2  cd /\n3  pwd\n4  help')

    def _cmd_help(self, args: List[str]) -> CommandResult:
        """List the available commands"""
        commands = [
            'Available commands:',
            '  ls [-la] [path]     - List directory contents (-l=long, -a=all, -A=hidden)',
            '  cd [path]           - Change directory (~ for home)',
            '  pwd                 - Print working directory',
            '  cat <file>          - Display file contents',
            '  mkdir <dir>         - Create directory',
            '  rmdir <dir>         - Remove empty directory',
            '  rm <file>           - Remove file',
            '  cp <src> <dest>     - Copy file',
            '  mv <src> <dest>     - Move/rename file',
            '  echo <text>         - Display text (echo <text> > file writes a file)',
            '  whoami              - Show current user (root)',
            '  id                  - Show user and group IDs',
            '  hostname            - Show hostname',
            '  date                - Show current date',
            '  uptime              - Show system uptime',
            '  uname [-a]          - Show system information',
            '  df                  - Show disk usage',
            '  free                - Show memory usage',
            '  ps                  - Show processes',
            '  env                 - Show environment variables',
            '  history             - Show command history',
            '  clear               - Clear screen',
            '  help                - Show this help',
            '',
            'Flag combinations supported (e.g. ls -la, ls -al, etc.)',
        ]
        return CommandResult('\n'.join(commands))
