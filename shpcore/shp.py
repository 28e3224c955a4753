# -*- coding:utf-8 -*-

# This file is part of shpcore

#  ***** GPL LICENSE BLOCK *****
#
#  This program is free software: you can redistribute it and/or modify
#  it under the terms of the GNU General Public License as published by
#  the Free Software Foundation, either version 3 of the License, or
#  (at your option) any later version.
#
#  This program is distributed in the hope that it will be useful,
#  but WITHOUT ANY WARRANTY; without even the implied warranty of
#  MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#  GNU General Public License for more details.
#
#  You should have received a copy of the GNU General Public License
#  along with this program.  If not, see <http://www.gnu.org/licenses/>.
#  All rights reserved.
#  ***** GPL LICENSE BLOCK *****
import logging
log = logging.getLogger(__name__)

import struct

import numpy as np

from .codec import BIG, LITTLE, unpackInt32, packInt32, unpackUInt32
from .hooks import defaultHooks, lenWithoutExtension
from .index import RecordIndex
from .shape import Shape, BorrowedShape, SHPT_NULL, VALID_TYPES, UINT_MAX, typeName, encodeRecord, decodeRecord
from .errors import ShpIOError, ShpCorruptError, ShpSchemaError, ShpAllocationError, ShpUsageError
from .settings import settings
from .utils import BBOX

INT_MAX = 0x7FFFFFFF
HEADER_SIZE = 100
FILE_CODE = 9994
VERSION = 1000
MAX_RECORDS = 256000000
#a buffer growing past this size is checked against the real file size first
BIG_BUFFER = 10 * 1024 * 1024

UPDATE_ACCESS = ('rb+', 'r+b', 'r+')


def buildHeader(shpType, words, bounds):
	'''100 bytes main file header, `words` is the file length in 16 bits words'''
	buf = bytearray(HEADER_SIZE)
	packInt32(buf, 0, FILE_CODE, BIG)
	packInt32(buf, 24, words, BIG)
	packInt32(buf, 28, VERSION, LITTLE)
	packInt32(buf, 32, shpType, LITTLE)
	struct.pack_into('<8d', buf, 36,
		bounds[0, 0], bounds[0, 1], bounds[1, 0], bounds[1, 1],
		bounds[0, 2], bounds[1, 2], bounds[0, 3], bounds[1, 3])
	return buf


def _fileSizeFromWords(words):
	if words < UINT_MAX // 2:
		return words * 2
	return (UINT_MAX // 2) * 2


class GeometryStore():
	'''
	Open .shp/.shx pair : random access decoding and encoding of geometry
	records. Build it with open(), create() or use restoreIndex() to rebuild
	a lost .shx.
	'''

	def __init__(self, hooks=None):
		self.hooks = hooks if hooks is not None else defaultHooks
		self.path = None
		self.fpSHP = None
		self.fpSHX = None
		self.readOnly = True
		self.lazy = False
		self.shpType = SHPT_NULL
		self.bounds = np.zeros((2, 4))
		self.fileSize = 0
		self.index = RecordIndex(0)
		self.recBuffer = bytearray()
		self.updated = False
		self.fastMode = False
		self.cachedObject = None
		self._objBuffer = None

	def _fail(self, errCls, message):
		self.hooks.error(message)
		raise errCls(message)

	def _openPair(self, base, ext, mode):
		'''Try lower then upper case extension'''
		fp = self.hooks.fopen(base + ext.lower(), mode)
		if fp is None:
			fp = self.hooks.fopen(base + ext.upper(), mode)
		return fp


	##############
	## Open / create

	@classmethod
	def open(cls, path, access='rb', hooks=None, restore=None):
		store = cls(hooks)
		if restore is None:
			restore = settings.restore_shx
		if restore:
			if not cls.restoreIndex(path, access, store.hooks):
				store._fail(ShpCorruptError, 'Unable to restore .shx file for {}'.format(path))

		store.readOnly = access not in UPDATE_ACCESS
		mode = 'rb' if store.readOnly else 'r+b'
		store.lazy = 'l' in access and store.readOnly

		base = path[:lenWithoutExtension(path)]
		store.path = base
		store.fpSHP = store._openPair(base, '.shp', mode)
		if store.fpSHP is None:
			store._fail(ShpIOError, 'Unable to open {0}.shp or {0}.SHP in {1} mode.'.format(base, mode))
		store.fpSHX = store._openPair(base, '.shx', mode)
		if store.fpSHX is None:
			store.hooks.fclose(store.fpSHP)
			store.fpSHP = None
			store._fail(ShpIOError, 'Unable to open {0}.shx or {0}.SHX. Use restore=True to rebuild it.'.format(base))

		try:
			store._loadHeaders()
			store._loadIndex()
		except (ShpIOError, ShpCorruptError):
			store._closeFiles()
			raise

		log.debug('Opened {} : {} records of type {}{}'.format(base, store.nRecords, typeName(store.shpType), ' (lazy)' if store.lazy else ''))
		return store

	def _loadHeaders(self):
		hooks = self.hooks
		header = hooks.fread(self.fpSHP, HEADER_SIZE)
		if len(header) != HEADER_SIZE:
			self._fail(ShpCorruptError, '.shp file is unreadable, or corrupt.')
		self.fileSize = _fileSizeFromWords(unpackUInt32(header, 24, BIG))

		header = hooks.fread(self.fpSHX, HEADER_SIZE)
		if len(header) != HEADER_SIZE or header[0] != 0 or header[1] != 0 \
		or header[2] != 0x27 or header[3] not in (0x0a, 0x0d):
			self._fail(ShpCorruptError, '.shx file is unreadable, or corrupt.')

		nRecords = ((unpackUInt32(header, 24, BIG) & 0x7fffffff) - 50) // 4
		if nRecords < 0 or nRecords > MAX_RECORDS:
			self._fail(ShpCorruptError, 'Record count in .shx header is {}, which seems unreasonable. Assuming header is corrupt.'.format(nRecords))

		#a big count may come from a corrupted header, trust the real size instead
		if nRecords >= 1024 * 1024:
			hooks.fseek(self.fpSHX, 0, 2)
			shxSize = hooks.ftell(self.fpSHX)
			if shxSize > HEADER_SIZE and shxSize / 2 < nRecords * 4 + 50:
				nRecords = (shxSize - HEADER_SIZE) // 8
			hooks.fseek(self.fpSHX, HEADER_SIZE, 0)

		self.shpType = unpackInt32(header, 32, LITTLE)
		xmin, ymin, xmax, ymax, zmin, zmax, mmin, mmax = struct.unpack_from('<8d', header, 36)
		self.bounds[0] = (xmin, ymin, zmin, mmin)
		self.bounds[1] = (xmax, ymax, zmax, mmax)
		self.index = RecordIndex(nRecords)

	def _loadIndex(self):
		nRecords = self.index.count
		if self.lazy:
			#descriptors stay zeroed until first read
			return
		body = self.hooks.fread(self.fpSHX, 8 * nRecords)
		if len(body) != 8 * nRecords:
			self._fail(ShpIOError, 'Failed to read all values for {} records in .shx file.'.format(nRecords))

		if self.readOnly:
			self.hooks.fclose(self.fpSHX)
			self.fpSHX = None

		words = RecordIndex.parseSHX(body, nRecords)
		badOffset = words[:,0] > INT_MAX
		badLength = words[:,1] > INT_MAX // 2 - 4
		bad = np.nonzero(badOffset | badLength)[0]
		if bad.size:
			i = int(bad[0])
			what = 'offset' if badOffset[i] else 'length'
			self._fail(ShpCorruptError, 'Invalid {} for entity {}'.format(what, i))
		self.index.load(words)

	def _fetchDescriptor(self, i):
		'''Lazy loading : read the .shx entry of record i on first access'''
		if self.index.offset(i) != 0 or self.fpSHX is None:
			return
		hooks = self.hooks
		entry = b''
		if hooks.fseek(self.fpSHX, HEADER_SIZE + 8 * i, 0) == 0:
			entry = hooks.fread(self.fpSHX, 8)
		if len(entry) != 8:
			self._fail(ShpIOError, 'Error in fseek()/fread() reading object from .shx file at offset {}'.format(HEADER_SIZE + 8 * i))
		offset = unpackUInt32(entry, 0, BIG)
		length = unpackUInt32(entry, 4, BIG)
		if offset > INT_MAX:
			self._fail(ShpCorruptError, 'Invalid offset for entity {}'.format(i))
		if length > INT_MAX // 2 - 4:
			self._fail(ShpCorruptError, 'Invalid length for entity {}'.format(i))
		self.index.set(i, offset=offset * 2, size=length * 2)

	@classmethod
	def create(cls, path, shpType, hooks=None):
		store = cls(hooks)
		base = path[:lenWithoutExtension(path)]
		store.path = base
		store.readOnly = False
		store.shpType = shpType

		store.fpSHP = store.hooks.fopen(base + '.shp', 'w+b')
		if store.fpSHP is None:
			store._fail(ShpIOError, 'Failed to create file {}.shp'.format(base))
		store.fpSHX = store.hooks.fopen(base + '.shx', 'w+b')
		if store.fpSHX is None:
			store.hooks.fclose(store.fpSHP)
			store.fpSHP = None
			store._fail(ShpIOError, 'Failed to create file {}.shx'.format(base))

		header = buildHeader(shpType, 50, store.bounds)
		for fp, ext in ((store.fpSHP, '.shp'), (store.fpSHX, '.shx')):
			if store.hooks.fwrite(fp, bytes(header)) != HEADER_SIZE:
				store._closeFiles()
				store._fail(ShpIOError, 'Failed to write {} header.'.format(ext))
		store.fileSize = HEADER_SIZE
		log.debug('Created {} of type {}'.format(base, typeName(shpType)))
		return store

	@classmethod
	def restoreIndex(cls, path, access='rb', hooks=None):
		'''
		Rebuild the .shx file from a linear scan of the .shp records.
		Return True on success. Running it again on the same .shp gives
		the same .shx.
		'''
		hooks = hooks if hooks is not None else defaultHooks
		base = path[:lenWithoutExtension(path)]
		mode = 'rb' if access not in UPDATE_ACCESS else 'r+b'

		fpSHP = hooks.fopen(base + '.shp', mode)
		if fpSHP is None:
			fpSHP = hooks.fopen(base + '.SHP', mode)
		if fpSHP is None:
			hooks.error('Unable to open {0}.shp or {0}.SHP.'.format(base))
			return False

		header = hooks.fread(fpSHP, HEADER_SIZE)
		if len(header) != HEADER_SIZE:
			hooks.error('.shp file is unreadable, or corrupt.')
			hooks.fclose(fpSHP)
			return False
		fileSize = _fileSizeFromWords(unpackUInt32(header, 24, BIG))

		fpSHX = hooks.fopen(base + '.shx', 'w+b')
		if fpSHX is None:
			hooks.error('Error opening file {}.shx for writing'.format(base))
			hooks.fclose(fpSHP)
			return False

		hooks.fwrite(fpSHX, header)
		cur = HEADER_SIZE
		recordOffset = HEADER_SIZE // 2
		nRecords = 0
		ok = True
		while cur < fileSize:
			rec = b''
			if hooks.fseek(fpSHP, cur, 0) == 0:
				rec = hooks.fread(fpSHP, 12)
			if len(rec) != 12:
				hooks.error('Error parsing .shp to restore .shx. Cannot read first bytes of record starting at offset {}'.format(cur))
				ok = False
				break
			contentLength = unpackInt32(rec, 4, BIG)
			if contentLength < 1 or contentLength > (fileSize - (cur + 8)) // 2:
				hooks.error('Error parsing .shp to restore .shx. Invalid record length = {} at record starting at offset {}'.format(contentLength, cur))
				ok = False
				break
			shpType = unpackInt32(rec, 8, LITTLE)
			if shpType not in VALID_TYPES:
				hooks.error('Error parsing .shp to restore .shx. Invalid shape type = {} at record starting at offset {}'.format(shpType, cur))
				ok = False
				break
			hooks.fwrite(fpSHX, struct.pack('>II', recordOffset, contentLength))
			recordOffset += contentLength + 4
			cur += 8 + 2 * contentLength
			nRecords += 1

		if ok and cur != fileSize:
			hooks.error('Error parsing .shp to restore .shx. Not expected number of bytes')
			ok = False

		realSize = HEADER_SIZE + 8 * nRecords
		hooks.fseek(fpSHX, 24, 0)
		hooks.fwrite(fpSHX, struct.pack('>I', realSize // 2))
		hooks.fclose(fpSHP)
		hooks.fclose(fpSHX)
		log.debug('Restored {}.shx with {} records'.format(base, nRecords))
		return ok


	##############
	## Properties

	@property
	def nRecords(self):
		return self.index.count

	@property
	def bbox(self):
		return BBOX.fromMinMax(self.bounds[0], self.bounds[1])

	def __len__(self):
		return self.nRecords

	def __iter__(self):
		for i in range(self.nRecords):
			shape = self.readObject(i)
			yield shape
			if shape.borrowed:
				shape.destroy()

	def __repr__(self):
		return '\n'.join([
		"* Geometry store :",
		" path {}".format(self.path),
		" type {}".format(typeName(self.shpType)),
		" records {}".format(self.nRecords),
		" file size {} bytes".format(self.fileSize),
		" bbox {}".format(self.bbox),
		" read only {}".format(self.readOnly)
		])

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc_value, traceback):
		self.close()

	def getInfo(self):
		'''Return (nRecords, shpType, minBound, maxBound), bounds as [x, y, z, m] lists'''
		return self.nRecords, self.shpType, self.bounds[0].tolist(), self.bounds[1].tolist()

	def setFastMode(self, enabled=True):
		'''
		In fast mode readObject returns the store owned BorrowedShape,
		its arrays being overwritten by the next read.
		'''
		if enabled and self.cachedObject is None:
			self.cachedObject = BorrowedShape(self)
		self.fastMode = enabled

	def objectBuffer(self, nVertices, nParts):
		'''Scratch arrays backing the borrowed shape : 4 doubles per vertex, 2 ints per part'''
		nBytes = 32 * nVertices + 8 * nParts
		if self._objBuffer is None or len(self._objBuffer) < nBytes:
			self._objBuffer = np.empty(nBytes + nBytes // 3, dtype=np.uint8)
		doubles = self._objBuffer[:32*nVertices].view(np.float64)
		ints = self._objBuffer[32*nVertices:nBytes].view(np.int32)
		return doubles, ints


	##############
	## Read / write

	def writeHeader(self):
		'''Rewrite both headers and the whole .shx body'''
		hooks = self.hooks
		if self.fpSHX is None:
			self._fail(ShpIOError, 'writeHeader failed : SHX file is closed')

		header = buildHeader(self.shpType, self.fileSize // 2, self.bounds)
		if hooks.fseek(self.fpSHP, 0, 0) != 0 or hooks.fwrite(self.fpSHP, bytes(header)) != HEADER_SIZE:
			self._fail(ShpIOError, 'Failure writing .shp header')

		packInt32(header, 24, (self.nRecords * 8 + HEADER_SIZE) // 2, BIG)
		if hooks.fseek(self.fpSHX, 0, 0) != 0 or hooks.fwrite(self.fpSHX, bytes(header)) != HEADER_SIZE:
			self._fail(ShpIOError, 'Failure writing .shx header')

		body = self.index.toSHX()
		if hooks.fwrite(self.fpSHX, body) != len(body):
			self._fail(ShpIOError, 'Failure writing .shx contents')

		hooks.fflush(self.fpSHP)
		hooks.fflush(self.fpSHX)

	def readObject(self, i):
		'''
		Decode record i. Return a new Shape, or in fast mode the store owned
		BorrowedShape, None if i is out of range.
		'''
		if i < 0 or i >= self.nRecords:
			return None
		hooks = self.hooks

		if self.fastMode and self.cachedObject.live:
			self._fail(ShpUsageError, 'Invalid read pattern in fast read mode. destroy() should be called.')

		if self.lazy:
			self._fetchDescriptor(i)

		offset = self.index.offset(i)
		entitySize = self.index.size(i) + 8

		if entitySize > len(self.recBuffer):
			newSize = entitySize
			if newSize < INT_MAX - newSize // 3:
				newSize += newSize // 3
			if newSize >= BIG_BUFFER:
				if len(self.recBuffer) < BIG_BUFFER:
					hooks.fseek(self.fpSHP, 0, 2)
					self.fileSize = min(hooks.ftell(self.fpSHP), UINT_MAX)
				if offset >= self.fileSize or entitySize > self.fileSize - offset:
					self._fail(ShpCorruptError, 'Error in fread() reading object of size {} at offset {} from .shp file'.format(entitySize, offset))
			self.recBuffer = bytearray(newSize)

		if hooks.fseek(self.fpSHP, offset, 0) != 0:
			self._fail(ShpIOError, 'Error in fseek() reading object from .shp file at offset {}'.format(offset))

		data = hooks.fread(self.fpSHP, entitySize)
		bytesRead = len(data)
		if bytesRead >= 8 and bytesRead == entitySize - 8:
			#the .shx length counts the record header, trust the .shp one
			contentLength = unpackInt32(data, 4, BIG)
			if contentLength < 0 or contentLength > INT_MAX // 2 - 4 or 2 * contentLength + 8 != bytesRead:
				self._fail(ShpCorruptError, 'Sanity check failed when trying to recover from inconsistent .shx/.shp with shape {}'.format(i))
			entitySize = bytesRead
		elif bytesRead != entitySize:
			self._fail(ShpIOError, 'Error in fread() reading object of size {} at offset {} from .shp file'.format(entitySize, offset))
		self.recBuffer[:bytesRead] = data

		if entitySize < 12:
			self._fail(ShpCorruptError, 'Corrupted .shp file : shape {} : nEntitySize = {}'.format(i, entitySize))

		if self.fastMode:
			shape = self.cachedObject
			shape.reset(SHPT_NULL, i)
		else:
			shape = Shape(SHPT_NULL, i)

		decodeRecord(self.recBuffer, entitySize, i, shape, hooks)

		if self.fastMode:
			shape.live = True
		return shape

	def writeObject(self, shapeId, shape):
		'''
		Encode `shape` as record `shapeId`, or append it when shapeId is -1.
		An explicit id must reference an existing record. Return the record id.
		'''
		hooks = self.hooks
		if self.readOnly:
			self._fail(ShpUsageError, 'Cannot write to a store opened in read only mode')
		if shape.shpType != self.shpType and shape.shpType != SHPT_NULL:
			self._fail(ShpSchemaError, 'Attempt to write a {} shape to a {} file'.format(typeName(shape.shpType), typeName(self.shpType)))

		if shapeId >= self.nRecords:
			self._fail(ShpUsageError, 'Invalid record id {} : store holds {} records. Use -1 to append.'.format(shapeId, self.nRecords))
		if shapeId < 0:
			shapeId = -1
		firstFeature = self.nRecords == 0
		if shapeId == -1:
			self.index.reserve()
		elif self.lazy:
			self._fetchDescriptor(shapeId)

		try:
			buf, size = encodeRecord(shape)
		except (ShpAllocationError, ShpSchemaError) as e:
			hooks.error(str(e))
			raise

		packInt32(buf, 0, (shapeId if shapeId != -1 else self.nRecords) + 1, BIG)
		packInt32(buf, 4, (size - 8) // 2, BIG)

		appendToLastRecord = False
		appendToFile = False
		if shapeId != -1 and self.index.offset(shapeId) + self.index.size(shapeId) + 8 == self.fileSize:
			recordOffset = self.index.offset(shapeId)
			appendToLastRecord = True
		elif shapeId == -1 or self.index.size(shapeId) < size - 8:
			if self.fileSize > UINT_MAX - size:
				self._fail(ShpAllocationError, 'Failed to write shape object. The maximum file size of {} has been reached. The current record of size {} cannot be added.'.format(self.fileSize, size))
			appendToFile = True
			recordOffset = self.fileSize
		else:
			recordOffset = self.index.offset(shapeId)
		log.debug('Write record {} ({} bytes) at offset {}'.format(shapeId, size, recordOffset))

		if hooks.ftell(self.fpSHP) != recordOffset:
			if hooks.fseek(self.fpSHP, recordOffset, 0) != 0:
				self._fail(ShpIOError, 'Error in fseek() while writing object to .shp file.')
		if hooks.fwrite(self.fpSHP, bytes(buf[:size])) != size:
			self._fail(ShpIOError, 'Error in fwrite() while writing object to .shp file.')

		if appendToLastRecord:
			self.fileSize = recordOffset + size
		if appendToFile:
			if shapeId == -1:
				shapeId = self.index.append(recordOffset, 0)
			else:
				self.index.set(shapeId, offset=recordOffset)
			self.fileSize += size
		self.index.set(shapeId, size=size - 8)
		self.updated = True

		self._expandBounds(shape, firstFeature)
		return shapeId

	def _expandBounds(self, shape, firstFeature):
		n = shape.nVertices
		channels = (shape.x, shape.y, shape.z, shape.m)
		if firstFeature:
			if shape.shpType == SHPT_NULL or n == 0:
				self.bounds[:] = 0
			else:
				for col, channel in enumerate(channels):
					value = channel[0] if channel is not None else 0
					self.bounds[0, col] = self.bounds[1, col] = value
		if n == 0:
			return
		for col, channel in enumerate(channels):
			if channel is None:
				continue
			self.bounds[0, col] = min(self.bounds[0, col], channel[:n].min())
			self.bounds[1, col] = max(self.bounds[1, col], channel[:n].max())

	def _closeFiles(self):
		if self.fpSHX is not None:
			self.hooks.fclose(self.fpSHX)
			self.fpSHX = None
		if self.fpSHP is not None:
			self.hooks.fclose(self.fpSHP)
			self.fpSHP = None

	def close(self):
		'''Write pending header and index, then release the files'''
		if self.fpSHP is None:
			return
		if self.updated:
			self.writeHeader()
			self.updated = False
		self._closeFiles()
		self.recBuffer = bytearray()
		self.cachedObject = None
		self._objBuffer = None
		log.debug('Closed {}'.format(self.path))
