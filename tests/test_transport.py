"""Tests for the remote channel, transfer and retention."""

import os
import shlex
import time

import pytest

from ncbackup.backup.retention import RetentionEnforcer
from ncbackup.backup.staging import StagingDirectory
from ncbackup.backup.transport import RemoteChannel, TransportManager
from ncbackup.utils.errors import TransportError

REMOTE_DIR = "/home/backup/backup/nextcloud"


@pytest.fixture
def channel(backup_config, fake_runner):
    return RemoteChannel(backup_config, fake_runner)


@pytest.fixture
def staging(backup_config):
    staging = StagingDirectory(backup_config.staging_root, "20250601_030000")
    staging.create()
    with open(staging.file("database.sql.gz"), "wb") as f:
        f.write(b"x")
    yield staging
    staging.cleanup()


def place_archive(fake_remote, name, age_days):
    directory = fake_remote.local(REMOTE_DIR)
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, name)
    with open(path, "wb") as f:
        f.write(b"archive")
    stamp = time.time() - age_days * 86400 - 60
    os.utime(path, (stamp, stamp))
    return path


class TestRemoteChannel:
    """Test ssh/rsync argument construction."""

    def test_ssh_command(self, channel):
        command = channel.ssh_command(["mkdir", "-p", "/home/backup/my backups"])

        assert command == [
            "ssh",
            "-i",
            channel.config.ssh_key,
            "-p",
            "2222",
            "-o",
            "BatchMode=yes",
            "backup@backup.example.com",
            "mkdir -p '/home/backup/my backups'",
        ]

    def test_upload_uses_same_key_and_port(self, channel, fake_runner, fake_remote, tmp_path):
        os.makedirs(fake_remote.local(REMOTE_DIR))
        local = tmp_path / "nextcloud_backup_1.tar.gz"
        local.write_bytes(b"archive")

        channel.upload(str(local), REMOTE_DIR)

        args = fake_runner.calls[-1]
        assert args[:4] == ["rsync", "-az", "--partial", "-e"]
        assert shlex.split(args[4]) == ["ssh", *channel.ssh_options()]
        assert args[-1] == f"backup@backup.example.com:{REMOTE_DIR}/"
        assert fake_remote.files(REMOTE_DIR) == ["nextcloud_backup_1.tar.gz"]


class TestTransportManager:
    """Test packaging and upload."""

    def test_archive_name(self):
        assert TransportManager.archive_name("20250601_030000") == "nextcloud_backup_20250601_030000.tar.gz"

    def test_transfer(self, backup_config, channel, fake_runner, fake_remote, staging):
        transport = TransportManager(backup_config, channel, fake_runner)

        remote = transport.transfer(staging)

        assert remote == f"{REMOTE_DIR}/nextcloud_backup_20250601_030000.tar.gz"
        assert fake_remote.files(REMOTE_DIR) == ["nextcloud_backup_20250601_030000.tar.gz"]
        assert not os.path.exists(os.path.join(backup_config.staging_root, "nextcloud_backup_20250601_030000.tar.gz"))
        assert [call[0] for call in fake_runner.calls] == ["ssh", "tar", "rsync"]

    def test_mkdir_failure(self, backup_config, channel, fake_runner, staging):
        fake_runner.fail(lambda args: args[0] == "ssh", returncode=255, stderr="Permission denied (publickey)")
        transport = TransportManager(backup_config, channel, fake_runner)

        with pytest.raises(TransportError, match="Failed to create remote backup directory") as exc_info:
            transport.transfer(staging)

        assert "Permission denied" in exc_info.value.details
        assert fake_runner.commands("tar") == []

    def test_package_failure(self, backup_config, channel, fake_runner, staging):
        fake_runner.fail(lambda args: args[0] == "tar")
        transport = TransportManager(backup_config, channel, fake_runner)

        with pytest.raises(TransportError, match="Failed to create backup archive"):
            transport.transfer(staging)

        assert fake_runner.commands("rsync") == []

    def test_upload_failure_removes_local_package(self, backup_config, channel, fake_runner, fake_remote, staging):
        fake_runner.fail(lambda args: args[0] == "rsync", returncode=12)
        transport = TransportManager(backup_config, channel, fake_runner)

        with pytest.raises(TransportError, match="Failed to transfer backup to VPS"):
            transport.transfer(staging)

        assert sorted(os.listdir(backup_config.staging_root)) == ["nextcloud_backup_20250601_030000"]
        assert fake_remote.files(REMOTE_DIR) == []

    def test_remote_size(self, backup_config, channel, fake_runner, fake_remote):
        place_archive(fake_remote, "nextcloud_backup_1.tar.gz", 0)
        transport = TransportManager(backup_config, channel, fake_runner)

        assert transport.remote_size("1") == "7B"
        assert transport.remote_size("2") == "unknown"


class TestRetentionEnforcer:
    """Test remote pruning."""

    def test_prune_command(self, backup_config, channel):
        command = RetentionEnforcer(backup_config, channel).prune_command(keep="nextcloud_backup_1.tar.gz")

        assert command == [
            "find",
            REMOTE_DIR,
            "-name",
            "nextcloud_backup_*.tar.gz",
            "-type",
            "f",
            "-mtime",
            "+7",
            "!",
            "-name",
            "nextcloud_backup_1.tar.gz",
            "-delete",
        ]

    def test_deletes_only_expired_archives(self, backup_config, channel, fake_remote):
        place_archive(fake_remote, "nextcloud_backup_old.tar.gz", 10)
        place_archive(fake_remote, "nextcloud_backup_edge.tar.gz", 7)
        place_archive(fake_remote, "nextcloud_backup_new.tar.gz", 1)
        place_archive(fake_remote, "unrelated.tar.gz", 30)

        result = RetentionEnforcer(backup_config, channel).enforce()

        assert fake_remote.files(REMOTE_DIR) == [
            "nextcloud_backup_edge.tar.gz",
            "nextcloud_backup_new.tar.gz",
            "unrelated.tar.gz",
        ]
        assert result.remaining == 2
        assert result.warnings == []

    def test_current_archive_never_deleted(self, backup_config, channel, fake_remote):
        place_archive(fake_remote, "nextcloud_backup_current.tar.gz", 30)

        result = RetentionEnforcer(backup_config, channel).enforce(keep="nextcloud_backup_current.tar.gz")

        assert fake_remote.files(REMOTE_DIR) == ["nextcloud_backup_current.tar.gz"]
        assert result.remaining == 1

    def test_prune_failure_is_warning(self, backup_config, channel, fake_runner, fake_remote):
        place_archive(fake_remote, "nextcloud_backup_old.tar.gz", 10)
        fake_runner.fail(lambda args: "-delete" in args[-1])

        result = RetentionEnforcer(backup_config, channel).enforce()

        assert result.warnings[0].startswith("Failed to cleanup old backups")
        assert result.remaining == 1

    def test_listing_failure_is_warning(self, backup_config, channel, fake_remote):
        # Remote directory does not exist, so find exits non-zero
        result = RetentionEnforcer(backup_config, channel).enforce()

        assert result.remaining is None
        assert len(result.warnings) == 2
        assert result.warnings[1].startswith("Failed to count remaining backups")
