import struct

import numpy as np
import pytest

from shpcore.codec import BIG, LITTLE, HOST_BYTEORDER, swapWord, packInt32, unpackInt32, \
	packUInt32, unpackUInt32, packDouble, unpackDouble, readDoubles, writeDoubles, \
	readInt32s, writeInt32s, readXY, writeXY
from shpcore.hooks import IOHooks, lenWithoutExtension
from shpcore.index import RecordIndex


def test_host_byteorder():
	assert HOST_BYTEORDER in (BIG, LITTLE)

def test_int32_byte_order():
	buf = bytearray(8)
	packInt32(buf, 0, 9994, BIG)
	packInt32(buf, 4, 1000, LITTLE)
	assert bytes(buf) == b'\x00\x00\x27\x0a\xe8\x03\x00\x00'
	assert unpackInt32(buf, 0, BIG) == 9994
	assert unpackInt32(buf, 4, LITTLE) == 1000

def test_uint32():
	buf = bytearray(4)
	packUInt32(buf, 0, 0xFFFFFFFE, BIG)
	assert unpackUInt32(buf, 0, BIG) == 0xFFFFFFFE
	assert unpackInt32(buf, 0, BIG) == -2

def test_double():
	buf = bytearray(8)
	packDouble(buf, 0, 1.5)
	assert bytes(buf) == struct.pack('<d', 1.5)
	assert unpackDouble(buf, 0) == 1.5
	packDouble(buf, 0, 1.5, BIG)
	assert bytes(buf) == struct.pack('>d', 1.5)

def test_swap_word():
	buf = bytearray(b'\x01\x02\x03\x04\x05')
	swapWord(buf, 1, 4)
	assert bytes(buf) == b'\x01\x05\x04\x03\x02'

def test_double_runs():
	buf = bytearray(40)
	end = writeDoubles(buf, 8, [1.0, -2.5, 3.25])
	assert end == 32
	assert buf[8:16] == struct.pack('<d', 1.0)
	assert readDoubles(buf, 8, 3).tolist() == [1.0, -2.5, 3.25]

def test_int_runs():
	buf = bytearray(12)
	assert writeInt32s(buf, 0, [0, 3, 7]) == 12
	assert bytes(buf) == struct.pack('<3i', 0, 3, 7)
	assert readInt32s(buf, 0, 3).tolist() == [0, 3, 7]

def test_xy_interleaving():
	buf = bytearray(32)
	writeXY(buf, 0, np.array([1.0, 3.0]), np.array([2.0, 4.0]))
	assert struct.unpack('<4d', bytes(buf)) == (1.0, 2.0, 3.0, 4.0)
	x, y = readXY(buf, 0, 2)
	assert x.tolist() == [1.0, 3.0]
	assert y.tolist() == [2.0, 4.0]


@pytest.mark.parametrize("text, expected", [
	("12.5abc", 12.5),
	("  -3e2", -300.0),
	(".5", 0.5),
	("abc", 0.0),
	("", 0.0),
	(b" 42 ", 42.0),
])
def test_atof(text, expected):
	assert IOHooks().atof(text) == expected

def test_atoi():
	hooks = IOHooks()
	assert hooks.atoi("  -42x") == -42
	assert hooks.atoi("12.9") == 12
	assert hooks.atoi("***") == 0

def test_len_without_extension():
	assert lenWithoutExtension('dir.v2/file.shp') == len('dir.v2/file')
	assert lenWithoutExtension('dir.v2/file') == len('dir.v2/file')
	assert lenWithoutExtension('dir.v2\\file') == len('dir.v2\\file')
	assert lenWithoutExtension('a.b.dbf') == len('a.b')

def test_fopen_missing(tmp_path):
	assert IOHooks().fopen(str(tmp_path / 'missing.shp'), 'rb') is None

def test_remove(tmp_path):
	path = tmp_path / 'file.cpg'
	path.write_bytes(b'UTF-8')
	hooks = IOHooks()
	assert hooks.remove(str(path)) == 0
	assert hooks.remove(str(path)) == -1


def test_index_growth():
	idx = RecordIndex()
	assert idx.capacity == 1
	assert idx.append(100, 20) == 0
	assert idx.capacity == 1
	assert idx.append(128, 20) == 1
	assert idx.capacity == 101
	for i in range(100):
		idx.append(0, 0)
	assert len(idx) == 102
	assert idx.capacity == 101 + 33 + 100
	assert idx.offset(1) == 128

def test_index_shx_body():
	idx = RecordIndex()
	idx.append(100, 20)
	idx.append(128, 36)
	body = idx.toSHX()
	assert body == struct.pack('>4I', 50, 10, 64, 18)
	words = RecordIndex.parseSHX(body, 2)
	other = RecordIndex(2)
	other.load(words)
	assert other.offset(1) == 128
	assert other.size(1) == 36
