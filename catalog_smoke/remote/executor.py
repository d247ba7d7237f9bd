import logging
import socket

import paramiko

from catalog_smoke.util.errors import ConnectivityError

logger = logging.getLogger(__name__)


class RemoteExecutor:
    def __init__(self, user="root", key_path=None, port=22, connect_timeout=30):
        """Run commands on remote hosts over SSH.

        Args:
            user (str): The user to log in as.
            key_path (str): The private key to authenticate with. If None, the SSH agent
                and the default keys are used.
            port (int): The SSH port.
            connect_timeout (float): Timeout for establishing the connection, in seconds.
        """
        self.user = user
        self.key_path = key_path
        self.port = port
        self.connect_timeout = connect_timeout

    def _connect(self, host) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        # Instances are created for a single run, their host keys can't be known in
        # advance.
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(
                hostname=host,
                port=self.port,
                username=self.user,
                key_filename=self.key_path,
                timeout=self.connect_timeout,
                banner_timeout=self.connect_timeout,
                auth_timeout=self.connect_timeout,
            )
        except (paramiko.SSHException, socket.error) as e:
            client.close()
            raise ConnectivityError("Could not connect to %s: %s" % (host, e))

        return client

    def execute(self, host, command):
        """Run a command on the host.

        Args:
            host (str): The host's address.
            command (str): The command line, interpreted by the remote user's shell.

        Returns:
            str: The command's output, with stderr merged into stdout.
            int: The command's exit status.

        Raises:
            ConnectivityError: The host couldn't be reached, or the session broke.
        """
        logger.debug("%s$ %s", host, command)

        client = self._connect(host)
        try:
            channel = client.get_transport().open_session()
            channel.set_combine_stderr(True)
            channel.exec_command(command)

            with channel.makefile("rb") as stdout:
                output = stdout.read().decode("utf-8", errors="replace")

            exit_status = channel.recv_exit_status()
        except (paramiko.SSHException, socket.error) as e:
            raise ConnectivityError("Lost connection to %s: %s" % (host, e))
        finally:
            client.close()

        logger.debug("%s: exit status %d", host, exit_status)

        return output, exit_status
