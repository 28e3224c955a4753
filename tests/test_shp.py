import os
import struct

import pytest

from shpcore import GeometryStore, BBOX, createObject, createSimpleObject, typeName, \
	ShpIOError, ShpCorruptError, ShpSchemaError, ShpUsageError, \
	SHPT_NULL, SHPT_POINT, SHPT_ARC, SHPT_POLYGON, SHPT_MULTIPOINTM, SHPT_POINTZ, \
	SHPT_ARCM, SHPT_POLYGONZ, SHPT_MULTIPATCH, SHPP_TRISTRIP, SHPP_RING

from conftest import RecordingHooks, FailingReadHooks, readBytes, patchBytes, fileSize


def arc(n, dx=0.0):
	return createSimpleObject(SHPT_ARC, [dx + i for i in range(n)], [float(i * i) for i in range(n)])

def writeArcs(base, counts):
	store = GeometryStore.create(base, SHPT_ARC)
	shapes = [arc(n, dx=10 * i) for i, n in enumerate(counts)]
	for shape in shapes:
		store.writeObject(-1, shape)
	store.close()
	return shapes


def test_point_scenario(base):
	store = GeometryStore.create(base, SHPT_POINT)
	assert store.writeObject(-1, createSimpleObject(SHPT_POINT, [1.0], [2.0])) == 0
	store.close()
	assert fileSize(base + '.shp') == 100 + 28
	assert fileSize(base + '.shx') == 100 + 8

	store = GeometryStore.open(base)
	assert store.nRecords == 1
	shape = store.readObject(0)
	assert typeName(shape.shpType) == 'Point'
	assert shape.nVertices == 1
	assert (shape.x[0], shape.y[0]) == (1.0, 2.0)
	assert shape.bounds.tolist() == [[1, 2, 0, 0], [1, 2, 0, 0]]
	assert store.getInfo() == (1, SHPT_POINT, [1.0, 2.0, 0.0, 0.0], [1.0, 2.0, 0.0, 0.0])
	store.close()

def test_headers(base):
	writeArcs(base, [3])
	shp = readBytes(base + '.shp')
	shx = readBytes(base + '.shx')
	assert shp[:4] == b'\x00\x00\x27\x0a'
	assert struct.unpack('>i', shp[24:28])[0] == len(shp) // 2
	assert struct.unpack('<ii', shp[28:36]) == (1000, SHPT_ARC)
	assert struct.unpack('<4d', shp[36:68]) == (0.0, 0.0, 2.0, 4.0)
	assert struct.unpack('>i', shx[24:28])[0] == 54
	assert shx[28:] == shp[28:100] + struct.pack('>2i', 50, (len(shp) - 108) // 2)
	#record header : 1 based number then content length in words
	assert struct.unpack('>2i', shp[100:108]) == (1, (len(shp) - 108) // 2)

def test_empty_store(base):
	GeometryStore.create(base, SHPT_POLYGON).close()
	assert fileSize(base + '.shp') == 100
	assert fileSize(base + '.shx') == 100
	with GeometryStore.open(base) as store:
		assert len(store) == 0
		assert store.shpType == SHPT_POLYGON
		assert store.readObject(0) is None
		assert store.readObject(-1) is None
		assert list(store) == []

def test_append_and_reopen(base):
	shapes = []
	store = GeometryStore.create(base, SHPT_POLYGON)
	for i in range(150):
		x = [i, i, i + 1, i + 1, i]
		y = [0, 1, 1, 0, 0]
		shape = createObject(SHPT_POLYGON, partStarts=[0, 5], x=x + x, y=y + y)
		assert store.writeObject(-1, shape) == i
		shapes.append(shape)
	store.close()

	with GeometryStore.open(base + '.shp') as store:
		assert store.nRecords == 150
		for i, shape in enumerate(store):
			assert shape.shapeId == i
			assert shape == shapes[i]
		assert store.bbox == BBOX(0, 0, 150, 1)

@pytest.mark.parametrize("shape", [
	createObject(SHPT_POINTZ, x=[1.0], y=[2.0], z=[3.0], m=[4.0]),
	createObject(SHPT_MULTIPOINTM, x=[1.0, 5.0], y=[2.0, -1.0], m=[4.0, 8.0]),
	createObject(SHPT_ARCM, partStarts=[0, 2], x=[0, 1, 2, 3], y=[0, 1, 0, 1], m=[1, 2, 3, 4]),
	createObject(SHPT_POLYGONZ, x=[0, 1, 1, 0], y=[0, 0, 1, 0], z=[5, 6, 7, 5], m=[0, 1, 2, 3]),
	createObject(SHPT_MULTIPATCH, partStarts=[0, 3], partTypes=[SHPP_TRISTRIP, SHPP_RING],
		x=[0, 1, 0, 2, 3, 2], y=[0, 0, 1, 0, 0, 1], z=[1, 1, 1, 2, 2, 2]),
	createObject(SHPT_MULTIPATCH, partStarts=[0], partTypes=[SHPP_TRISTRIP],
		x=[0, 1, 0], y=[0, 0, 1], z=[1, 1, 1], m=[5, 6, 7]),
	createObject(SHPT_NULL),
], ids=lambda s: s.typeName)
def test_layouts(base, shape):
	store = GeometryStore.create(base, shape.shpType)
	store.writeObject(-1, shape)
	store.writeObject(-1, shape)
	store.close()
	with GeometryStore.open(base) as store:
		assert store.nRecords == 2
		assert store.readObject(1) == shape
		nRecords, shpType, mins, maxs = store.getInfo()
		assert mins == shape.bounds[0].tolist()
		assert maxs == shape.bounds[1].tolist()

def test_null_shape_in_typed_store(base):
	store = GeometryStore.create(base, SHPT_ARC)
	store.writeObject(-1, arc(3))
	store.writeObject(-1, createObject(SHPT_NULL))
	store.close()
	with GeometryStore.open(base) as store:
		assert store.readObject(1).shpType == SHPT_NULL
		assert store.readObject(1).nVertices == 0

def test_type_mismatch(base, hooks):
	store = GeometryStore.create(base, SHPT_ARC, hooks=hooks)
	with pytest.raises(ShpSchemaError):
		store.writeObject(-1, createSimpleObject(SHPT_POINT, [1.0], [2.0]))
	assert 'Point' in hooks.messages[0]
	store.close()

def test_read_only_write(base):
	writeArcs(base, [2])
	with GeometryStore.open(base, 'rb') as store:
		with pytest.raises(ShpUsageError):
			store.writeObject(-1, arc(2))

class FailingWriteHooks(RecordingHooks):

	def fwrite(self, fp, data):
		if fp.name.endswith('.shp'):
			return 0
		return RecordingHooks.fwrite(self, fp, data)

def test_failed_write_keeps_store_clean(base):
	writeArcs(base, [2])
	before = readBytes(base + '.shp')
	hooks = FailingWriteHooks()
	store = GeometryStore.open(base, 'rb+', hooks=hooks)
	with pytest.raises(ShpIOError):
		store.writeObject(-1, arc(3))
	assert not store.updated
	assert store.nRecords == 1
	assert 'fwrite' in hooks.messages[0]
	store.close()
	assert readBytes(base + '.shp') == before

def test_placement(base, hooks):
	#arc records are 56 + 16 * n bytes
	writeArcs(base, [2, 3, 2])
	store = GeometryStore.open(base, 'rb+', hooks=hooks)
	assert [store.index.offset(i) for i in range(3)] == [100, 188, 292]
	assert store.fileSize == 380

	#smaller : rewritten at the same offset
	store.writeObject(1, arc(2, dx=100))
	assert store.index.offset(1) == 188
	assert store.index.size(1) == 80
	assert store.fileSize == 380

	#bigger : moved to the end of file
	store.writeObject(1, arc(5, dx=200))
	assert store.index.offset(1) == 380
	assert store.fileSize == 516

	#same size
	store.writeObject(2, arc(2, dx=300))
	assert store.index.offset(2) == 292

	#last record grows in place
	last = arc(10, dx=400)
	store.writeObject(1, last)
	assert store.index.offset(1) == 380
	assert store.fileSize == 380 + 56 + 160

	#an explicit id must reference an existing record
	for shapeId in (3, 99):
		with pytest.raises(ShpUsageError):
			store.writeObject(shapeId, arc(2))
	assert 'Invalid record id 99' in hooks.messages[-1]
	assert store.nRecords == 3
	assert store.writeObject(-1, arc(2)) == 3
	store.close()

	with GeometryStore.open(base) as store:
		assert store.nRecords == 4
		assert store.readObject(1) == last
		assert store.readObject(2) == arc(2, dx=300)
		assert store.fileSize == fileSize(base + '.shp')

def test_bounds_grow(base):
	store = GeometryStore.create(base, SHPT_ARC)
	store.writeObject(-1, createSimpleObject(SHPT_ARC, [5, 6], [5, 6]))
	assert store.getInfo()[2:] == ([5, 5, 0, 0], [6, 6, 0, 0])
	store.writeObject(-1, createSimpleObject(SHPT_ARC, [-1, 2], [3, 9]))
	assert store.getInfo()[2:] == ([-1, 3, 0, 0], [6, 9, 0, 0])
	store.close()

def test_lazy_and_eager_agree(base):
	shapes = writeArcs(base, [2, 4, 3, 5])
	eager = GeometryStore.open(base, 'rb')
	lazy = GeometryStore.open(base, 'rbl')
	assert eager.fpSHX is None
	assert lazy.fpSHX is not None
	assert lazy.index.offset(3) == 0
	for i in (3, 0, 2, 1):
		assert lazy.readObject(i) == eager.readObject(i) == shapes[i]
	assert lazy.index.offset(3) == eager.index.offset(3)
	eager.close()
	lazy.close()

def test_fast_mode(base):
	shapes = writeArcs(base, [2, 4, 3])
	with GeometryStore.open(base) as store:
		store.setFastMode(True)
		first = store.readObject(0)
		assert first.borrowed
		assert first == shapes[0]
		with pytest.raises(ShpUsageError):
			store.readObject(1)
		first.destroy()
		second = store.readObject(1)
		assert second is first
		assert second == shapes[1]
		second.destroy()
		assert [s.nVertices for s in store] == [2, 4, 3]

def test_restore_index(base, hooks):
	writeArcs(base, [2, 3, 4])
	original = readBytes(base + '.shx')
	os.remove(base + '.shx')

	with pytest.raises(ShpIOError):
		GeometryStore.open(base, hooks=hooks)
	assert 'restore' in hooks.messages[-1]

	with GeometryStore.open(base, restore=True) as store:
		assert store.nRecords == 3
		assert store.readObject(2).nVertices == 4
	assert readBytes(base + '.shx') == original

	assert GeometryStore.restoreIndex(base)
	assert readBytes(base + '.shx') == original

def test_restore_invalid_length(base, hooks):
	writeArcs(base, [2, 3])
	patchBytes(base + '.shp', 188 + 4, struct.pack('>i', 10000))
	assert not GeometryStore.restoreIndex(base, hooks=hooks)
	assert 'Invalid record length = 10000' in hooks.messages[0]
	assert 'offset 188' in hooks.messages[0]

def test_restore_invalid_type(base, hooks):
	writeArcs(base, [2, 3])
	patchBytes(base + '.shp', 188 + 8, struct.pack('<i', 7))
	assert not GeometryStore.restoreIndex(base, hooks=hooks)
	assert 'Invalid shape type = 7' in hooks.messages[0]

def test_missing_shp(base, hooks):
	with pytest.raises(ShpIOError):
		GeometryStore.open(base, hooks=hooks)
	assert hooks.messages == ['Unable to open {0}.shp or {0}.SHP in rb mode.'.format(base)]

def test_corrupt_shx_magic(base):
	writeArcs(base, [2])
	patchBytes(base + '.shx', 3, b'\x0b')
	with pytest.raises(ShpCorruptError):
		GeometryStore.open(base, hooks=RecordingHooks())

def test_unreasonable_record_count(base):
	writeArcs(base, [2])
	patchBytes(base + '.shx', 24, struct.pack('>i', 10))
	with pytest.raises(ShpCorruptError):
		GeometryStore.open(base, hooks=RecordingHooks())

def test_invalid_offset(base, hooks):
	writeArcs(base, [2, 2])
	patchBytes(base + '.shx', 108, struct.pack('>I', 0x80000000))
	with pytest.raises(ShpCorruptError):
		GeometryStore.open(base, hooks=hooks)
	assert hooks.messages == ['Invalid offset for entity 1']

	with GeometryStore.open(base, 'rbl', hooks=hooks) as store:
		assert store.readObject(0).nVertices == 2
		with pytest.raises(ShpCorruptError):
			store.readObject(1)

def test_invalid_length(base, hooks):
	writeArcs(base, [2])
	patchBytes(base + '.shx', 104, struct.pack('>I', 0x7FFFFFFF))
	with pytest.raises(ShpCorruptError):
		GeometryStore.open(base, hooks=hooks)
	assert hooks.messages == ['Invalid length for entity 0']

def test_big_record_count_checked_against_shx_size(base):
	shapes = writeArcs(base, [2, 3, 2])
	#header claims 2 million records, the file holds 3
	patchBytes(base + '.shx', 24, struct.pack('>i', 50 + 4 * 2000000))
	with GeometryStore.open(base) as store:
		assert store.nRecords == 3
		assert [store.readObject(i) for i in range(3)] == shapes

def test_big_record_past_end_of_file(base, hooks):
	shapes = writeArcs(base, [2, 3])
	#12 MB claimed for the first record of a tiny file
	patchBytes(base + '.shx', 104, struct.pack('>I', 6000000))
	with GeometryStore.open(base, hooks=hooks) as store:
		with pytest.raises(ShpCorruptError):
			store.readObject(0)
		assert hooks.messages == ['Error in fread() reading object of size 12000008 at offset 100 from .shp file']
		assert store.fileSize == fileSize(base + '.shp')
		assert store.readObject(1) == shapes[1]

def test_short_shx(base):
	writeArcs(base, [2, 2])
	with open(base + '.shx', 'r+b') as f:
		f.truncate(108)
	with pytest.raises(ShpIOError):
		GeometryStore.open(base, hooks=RecordingHooks())

def test_recover_header_counted_length(base):
	store = GeometryStore.create(base, SHPT_POINT)
	store.writeObject(-1, createSimpleObject(SHPT_POINT, [1.0], [2.0]))
	store.close()
	#the .shx length of the last record wrongly includes its 8 bytes header
	patchBytes(base + '.shx', 104, struct.pack('>I', 14))
	with GeometryStore.open(base) as store:
		shape = store.readObject(0)
		assert (shape.x[0], shape.y[0]) == (1.0, 2.0)
		assert not shape.measureUsed

def test_recover_sanity_check(base, hooks):
	store = GeometryStore.create(base, SHPT_POINT)
	store.writeObject(-1, createSimpleObject(SHPT_POINT, [1.0], [2.0]))
	store.close()
	patchBytes(base + '.shx', 104, struct.pack('>I', 14))
	patchBytes(base + '.shp', 104, struct.pack('>I', 3))
	with GeometryStore.open(base, hooks=hooks) as store:
		with pytest.raises(ShpCorruptError):
			store.readObject(0)
	assert 'Sanity check failed' in hooks.messages[0]

def test_short_read(base):
	writeArcs(base, [2])
	with GeometryStore.open(base, hooks=FailingReadHooks('.shp', allowed=1)) as store:
		with pytest.raises(ShpIOError):
			store.readObject(0)

def test_write_header_without_shx(base, hooks):
	writeArcs(base, [2])
	store = GeometryStore.open(base, 'rb', hooks=hooks)
	with pytest.raises(ShpIOError):
		store.writeHeader()
	assert 'SHX file is closed' in hooks.messages[0]
	store.close()

def test_repr(base):
	writeArcs(base, [2])
	with GeometryStore.open(base) as store:
		assert 'records 1' in repr(store)
