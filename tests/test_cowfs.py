import pytest

from neonova.cowfs import BLOCK_SIZE, IV_SIZE, CowFS, SnapshotInfo

KEY = bytes(range(32))


@pytest.fixture
def fs():
    return CowFS()


def test_mount_and_unmount(fs, tmp_path):
    fs.mount("/dev/sda1", str(tmp_path))
    assert fs.mountpoint == str(tmp_path)
    fs.unmount(str(tmp_path))
    assert fs.mountpoint is None
    assert fs.files == []


def test_write_then_read_round_trip(fs, tmp_path):
    target = tmp_path / "data.bin"
    assert fs.write(target, b"hello world", 0) == 11
    assert fs.read(target, 5, 6) == b"world"
    assert fs.read(target, 100, 0) == b"hello world"


def test_write_at_offset_preserves_existing(fs, tmp_path):
    target = tmp_path / "data.bin"
    fs.write(target, b"abcdef", 0)
    fs.write(target, b"XY", 2)
    assert target.read_bytes() == b"abXYef"


def test_write_past_end_pads_with_zeros(fs, tmp_path):
    target = tmp_path / "sparse.bin"
    fs.write(target, b"Z", 3)
    assert target.read_bytes() == b"\x00\x00\x00Z"


def test_read_missing_file_raises(fs, tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.read(tmp_path / "absent", 4, 0)


def test_snapshot_info(fs, tmp_path):
    info = fs.snapshot(tmp_path / "x")
    assert info == SnapshotInfo(id=1, name="snapshot1", timestamp=0)
    fs.restore_snapshot(info)
    assert fs.snapshot(tmp_path / "y") == info


def test_deduplicate_counts_repeated_blocks(fs, tmp_path):
    target = tmp_path / "blocks.bin"
    target.write_bytes(b"A" * BLOCK_SIZE * 3 + b"B" * BLOCK_SIZE)
    assert fs.deduplicate(target) == 2
    assert len(fs.block_hashes) == 2
    assert fs.deduplicate(target) == 4


def test_deduplicate_across_files(fs, tmp_path):
    first = tmp_path / "one.bin"
    second = tmp_path / "two.bin"
    first.write_bytes(b"Q" * BLOCK_SIZE)
    second.write_bytes(b"Q" * BLOCK_SIZE + b"R" * 10)
    assert fs.deduplicate(first) == 0
    assert fs.deduplicate(second) == 1


def test_deduplicate_missing_file_raises(fs, tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.deduplicate(tmp_path / "absent")


def test_encrypt_decrypt_round_trip(fs, tmp_path):
    plain = tmp_path / "plain.txt"
    content = b"some secretless content " * 500
    plain.write_bytes(content)
    enc = fs.encrypt(plain, KEY)
    assert enc.name == "plain.txt.enc"
    assert enc.read_bytes()[IV_SIZE:] != content
    dec = fs.decrypt(enc, KEY)
    assert dec.name == "plain.txt.enc.dec"
    assert dec.read_bytes() == content


def test_encrypted_size_is_padded_to_block(fs, tmp_path):
    plain = tmp_path / "p.bin"
    plain.write_bytes(b"x" * 20)
    enc = fs.encrypt(plain, KEY)
    size = len(enc.read_bytes())
    assert (size - IV_SIZE) % 16 == 0
    assert size - IV_SIZE > 20


def test_encrypt_empty_file_round_trip(fs, tmp_path):
    plain = tmp_path / "empty"
    plain.write_bytes(b"")
    dec = fs.decrypt(fs.encrypt(plain, KEY), KEY)
    assert dec.read_bytes() == b""


def test_encrypt_rejects_bad_key_length(fs, tmp_path):
    plain = tmp_path / "p.bin"
    plain.write_bytes(b"data")
    with pytest.raises(ValueError):
        fs.encrypt(plain, b"short")


def test_encrypt_missing_file_raises(fs, tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.encrypt(tmp_path / "absent", KEY)


def test_backup_and_restore(fs, tmp_path):
    original = tmp_path / "orig.bin"
    original.write_bytes(b"payload" * 1000)
    backup = tmp_path / "orig.bak"
    fs.backup(original, backup)
    assert backup.read_bytes() == original.read_bytes()
    restored = tmp_path / "restored.bin"
    fs.restore_backup(backup, restored)
    assert restored.read_bytes() == b"payload" * 1000


def test_backup_missing_source_raises(fs, tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.backup(tmp_path / "absent", tmp_path / "dest")
    assert not (tmp_path / "dest").exists()