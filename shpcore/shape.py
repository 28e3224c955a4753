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

'''
Geometry record model

A record is held either by an owned `Shape` (arrays belong to the caller)
or by a `BorrowedShape` whose arrays are views on a buffer owned by the
geometry store that decoded it (fast read mode).
'''

import struct

import numpy as np

from .codec import LITTLE, unpackInt32, unpackUInt32, unpackDouble, readInt32s, \
	readDoublesInto, readXYInto, writeDoubles, writeInt32s, writeXY, packInt32
from .errors import ShpCorruptError, ShpSchemaError, ShpAllocationError
from .settings import settings
from .utils import BBOX

#shape types
SHPT_NULL = 0
SHPT_POINT = 1
SHPT_ARC = 3
SHPT_POLYGON = 5
SHPT_MULTIPOINT = 8
SHPT_POINTZ = 11
SHPT_ARCZ = 13
SHPT_POLYGONZ = 15
SHPT_MULTIPOINTZ = 18
SHPT_POINTM = 21
SHPT_ARCM = 23
SHPT_POLYGONM = 25
SHPT_MULTIPOINTM = 28
SHPT_MULTIPATCH = 31

#part types, only meaningful for multipatch
SHPP_TRISTRIP = 0
SHPP_TRIFAN = 1
SHPP_OUTERRING = 2
SHPP_INNERRING = 3
SHPP_FIRSTRING = 4
SHPP_RING = 5

ARC_TYPES = (SHPT_ARC, SHPT_POLYGON, SHPT_ARCZ, SHPT_POLYGONZ, SHPT_ARCM, SHPT_POLYGONM, SHPT_MULTIPATCH)
MULTIPOINT_TYPES = (SHPT_MULTIPOINT, SHPT_MULTIPOINTZ, SHPT_MULTIPOINTM)
POINT_TYPES = (SHPT_POINT, SHPT_POINTZ, SHPT_POINTM)
#types whose records carry a Z block
Z_TYPES = (SHPT_POINTZ, SHPT_ARCZ, SHPT_POLYGONZ, SHPT_MULTIPOINTZ, SHPT_MULTIPATCH)
#types accepting measures at creation
M_TYPES = (SHPT_POINTM, SHPT_ARCM, SHPT_POLYGONM, SHPT_MULTIPOINTM) + Z_TYPES
VALID_TYPES = (SHPT_NULL,) + POINT_TYPES + (SHPT_ARC, SHPT_POLYGON, SHPT_ARCZ, SHPT_POLYGONZ, SHPT_ARCM, SHPT_POLYGONM) \
	+ MULTIPOINT_TYPES + (SHPT_MULTIPATCH,)

TYPE_NAMES = {
	SHPT_NULL : 'NullShape',
	SHPT_POINT : 'Point',
	SHPT_ARC : 'Arc',
	SHPT_POLYGON : 'Polygon',
	SHPT_MULTIPOINT : 'MultiPoint',
	SHPT_POINTZ : 'PointZ',
	SHPT_ARCZ : 'ArcZ',
	SHPT_POLYGONZ : 'PolygonZ',
	SHPT_MULTIPOINTZ : 'MultiPointZ',
	SHPT_POINTM : 'PointM',
	SHPT_ARCM : 'ArcM',
	SHPT_POLYGONM : 'PolygonM',
	SHPT_MULTIPOINTM : 'MultiPointM',
	SHPT_MULTIPATCH : 'MultiPatch'
}

PART_TYPE_NAMES = {
	SHPP_TRISTRIP : 'TriangleStrip',
	SHPP_TRIFAN : 'TriangleFan',
	SHPP_OUTERRING : 'OuterRing',
	SHPP_INNERRING : 'InnerRing',
	SHPP_FIRSTRING : 'FirstRing',
	SHPP_RING : 'Ring'
}

MAX_POINTS = 50 * 1000 * 1000
MAX_PARTS = 10 * 1000 * 1000
UINT_MAX = 0xFFFFFFFF

#extra room of the encoding buffer for record header, bounds and counts
GEOM_HEADER_SLACK = 128


def typeName(shpType):
	return TYPE_NAMES.get(shpType, 'UnknownShapeType')

def partTypeName(partType):
	return PART_TYPE_NAMES.get(partType, 'UnknownPartType')


class Shape():
	'''
	One feature geometry, owned by the caller.

	Vertex channels are float64 arrays of length nVertices. Z and M are always
	allocated (filled with zeros when the record does not carry them) and
	measureUsed tells whether M values are meaningful.
	bounds is a 2x4 array : min then max row, columns x, y, z, m.
	'''

	borrowed = False

	def __init__(self, shpType=SHPT_NULL, shapeId=-1):
		self.shpType = shpType
		self.shapeId = shapeId
		self.measureUsed = False
		self.bounds = np.zeros((2, 4))
		self.allocate(0, 0)

	def allocate(self, nVertices, nParts):
		self.nVertices = nVertices
		self.nParts = nParts
		self.x = np.zeros(nVertices)
		self.y = np.zeros(nVertices)
		self.z = np.zeros(nVertices)
		self.m = np.zeros(nVertices)
		self.partStart = np.zeros(nParts, dtype=np.int32)
		self.partType = np.full(nParts, SHPP_RING, dtype=np.int32)

	@property
	def typeName(self):
		return typeName(self.shpType)

	@property
	def hasZ(self):
		return self.shpType in Z_TYPES

	@property
	def hasM(self):
		return self.measureUsed

	@property
	def bbox(self):
		return BBOX.fromMinMax(self.bounds[0], self.bounds[1])

	@property
	def xmin(self):
		return float(self.bounds[0, 0])
	@property
	def ymin(self):
		return float(self.bounds[0, 1])
	@property
	def xmax(self):
		return float(self.bounds[1, 0])
	@property
	def ymax(self):
		return float(self.bounds[1, 1])

	def computeExtents(self):
		'''Set bounds to the min/max of every channel, zeros when there is no vertex'''
		self.bounds[:] = 0
		if self.nVertices == 0:
			return
		for col, channel in enumerate((self.x, self.y, self.z, self.m)):
			if channel is None:
				continue
			self.bounds[0, col] = channel.min()
			self.bounds[1, col] = channel.max()

	def partVertexCount(self, iPart):
		'''Number of vertices of a part, the last one running to the end'''
		if iPart < 0 or iPart >= self.nParts:
			return 0
		if iPart == self.nParts - 1:
			return self.nVertices - int(self.partStart[iPart])
		return int(self.partStart[iPart + 1]) - int(self.partStart[iPart])

	def parts(self):
		'''Yield (partType, slice) for each part'''
		for i in range(self.nParts):
			start = int(self.partStart[i])
			yield int(self.partType[i]), slice(start, start + self.partVertexCount(i))

	def vertices(self):
		'''List of (x, y, z, m) tuples'''
		zeros = np.zeros(self.nVertices)
		z = self.z if self.z is not None else zeros
		m = self.m if self.m is not None else zeros
		return list(zip(self.x.tolist(), self.y.tolist(), z.tolist(), m.tolist()))

	def destroy(self):
		self.allocate(0, 0)

	def _channel(self, name):
		arr = getattr(self, name)
		if arr is None:
			return np.zeros(self.nVertices)
		return arr

	def __eq__(self, other):
		'''Geometry equality : type, parts, vertices and bounds. The record id is ignored.'''
		if not isinstance(other, Shape):
			return NotImplemented
		if self.shpType != other.shpType or self.nVertices != other.nVertices or self.nParts != other.nParts:
			return False
		if self.measureUsed != other.measureUsed:
			return False
		if not (np.array_equal(self.partStart, other.partStart) and np.array_equal(self.partType, other.partType)):
			return False
		for name in ('x', 'y', 'z', 'm'):
			if not np.array_equal(self._channel(name), other._channel(name)):
				return False
		return bool(np.array_equal(self.bounds, other.bounds))

	def __ne__(self, other):
		eq = self.__eq__(other)
		return eq if eq is NotImplemented else not eq

	def __repr__(self):
		return '\n'.join([
		"* Shape {} ({})".format(self.shapeId, self.typeName),
		" vertices {}".format(self.nVertices),
		" parts {}".format(self.nParts),
		" measures {}".format(self.measureUsed),
		" bounds {}".format(self.bbox)
		])


class BorrowedShape(Shape):
	'''
	Record decoded in fast read mode. Its arrays are views on the scratch
	buffer of the store that owns it, so only one can be alive at a time :
	call destroy() before the next read. Z and M are None when the record does
	not carry them.
	'''

	borrowed = True

	def __init__(self, owner):
		self.owner = owner
		self.live = False
		self.bounds = np.zeros((2, 4))
		self.reset(SHPT_NULL, -1)

	def reset(self, shpType, shapeId):
		self.shpType = shpType
		self.shapeId = shapeId
		self.measureUsed = False
		self.bounds[:] = 0
		self.nVertices = self.nParts = 0
		self.x = self.y = self.z = self.m = np.zeros(0)
		self.partStart = self.partType = np.zeros(0, dtype=np.int32)

	def allocate(self, nVertices, nParts):
		self.nVertices = nVertices
		self.nParts = nParts
		doubles, ints = self.owner.objectBuffer(nVertices, nParts)
		self.x = doubles[0:nVertices]
		self.y = doubles[nVertices:2*nVertices]
		self.z = doubles[2*nVertices:3*nVertices]
		self.m = doubles[3*nVertices:4*nVertices]
		self.partStart = ints[0:nParts]
		self.partType = ints[nParts:2*nParts]
		self.partType[:] = SHPP_RING

	def aliasBounds(self):
		'''A single point is its own bounding box : view the vertex on the min row'''
		self.nVertices = 1
		self.nParts = 0
		self.x = self.bounds[0, 0:1]
		self.y = self.bounds[0, 1:2]
		self.z = self.bounds[0, 2:3]
		self.m = self.bounds[0, 3:4]
		self.partStart = self.partType = np.zeros(0, dtype=np.int32)

	def destroy(self):
		'''Release the record, memory stays owned by the store'''
		self.live = False


def createObject(shpType, shapeId=-1, nParts=0, partStarts=None, partTypes=None,
		nVertices=None, x=None, y=None, z=None, m=None):
	'''
	Build an owned Shape.
	nVertices defaults to the length of x. Missing channels are zeros, Z is kept
	only for Z types and M only for types accepting measures, multipatch
	included only when settings.multipatch_measure is on. Arc, polygon and
	multipatch shapes get at least one part, the first starting at 0, with part
	types defaulting to ring.
	'''
	if nVertices is None:
		nVertices = len(x) if x is not None else 0
	if not nParts and partStarts is not None:
		nParts = len(partStarts)

	hasZ = shpType in Z_TYPES
	hasM = shpType in M_TYPES
	if shpType == SHPT_MULTIPATCH:
		hasM = settings.multipatch_measure

	shape = Shape(shpType, shapeId)
	if shpType in ARC_TYPES:
		shape.allocate(nVertices, max(1, nParts))
		for i in range(nParts):
			if partStarts is not None:
				shape.partStart[i] = partStarts[i]
			if partTypes is not None:
				shape.partType[i] = partTypes[i]
		shape.partStart[0] = 0
	else:
		shape.allocate(nVertices, 0)

	if nVertices > 0:
		if x is not None:
			shape.x[:] = np.asarray(x, dtype=np.float64)[:nVertices]
		if y is not None:
			shape.y[:] = np.asarray(y, dtype=np.float64)[:nVertices]
		if z is not None and hasZ:
			shape.z[:] = np.asarray(z, dtype=np.float64)[:nVertices]
		if m is not None and hasM:
			shape.m[:] = np.asarray(m, dtype=np.float64)[:nVertices]
			shape.measureUsed = True

	shape.computeExtents()
	return shape


def createSimpleObject(shpType, x, y, z=None):
	'''Single part shape without measures'''
	return createObject(shpType, -1, 0, None, None, len(x), x, y, z, None)


def computeExtents(shape):
	shape.computeExtents()


##############
## Encoding

def _setBounds(buf, shape):
	struct.pack_into('<4d', buf, 12, shape.bounds[0, 0], shape.bounds[0, 1], shape.bounds[1, 0], shape.bounds[1, 1])


def encodeRecord(shape):
	'''
	Serialize a shape into a new record buffer, header words left blank
	except the shape type at byte 8. Return (buffer, recordSize).
	'''
	n = shape.nVertices
	recMaxSize = n * 4 * 8 + shape.nParts * 8
	if recMaxSize > UINT_MAX - GEOM_HEADER_SLACK:
		raise ShpAllocationError('Failed to write shape object. Too big geometry.')
	buf = bytearray(recMaxSize + GEOM_HEADER_SLACK)
	shpType = shape.shpType

	if shpType in ARC_TYPES:
		_setBounds(buf, shape)
		packInt32(buf, 44, shape.nParts, LITTLE)
		packInt32(buf, 48, n, LITTLE)
		size = writeInt32s(buf, 52, shape.partStart[:shape.nParts])
		if shpType == SHPT_MULTIPATCH:
			size = writeInt32s(buf, size, shape.partType[:shape.nParts])
		size = writeXY(buf, size, shape.x, shape.y)
		if shpType in (SHPT_POLYGONZ, SHPT_ARCZ, SHPT_MULTIPATCH):
			size = writeDoubles(buf, size, (shape.bounds[0, 2], shape.bounds[1, 2]))
			size = writeDoubles(buf, size, shape.z)
		if shape.measureUsed and shpType in (SHPT_POLYGONM, SHPT_ARCM, SHPT_POLYGONZ, SHPT_ARCZ, SHPT_MULTIPATCH):
			size = writeDoubles(buf, size, (shape.bounds[0, 3], shape.bounds[1, 3]))
			size = writeDoubles(buf, size, shape.m)

	elif shpType in MULTIPOINT_TYPES:
		_setBounds(buf, shape)
		packInt32(buf, 44, n, LITTLE)
		size = writeXY(buf, 48, shape.x, shape.y)
		if shpType == SHPT_MULTIPOINTZ:
			size = writeDoubles(buf, size, (shape.bounds[0, 2], shape.bounds[1, 2]))
			size = writeDoubles(buf, size, shape.z)
		if shape.measureUsed and shpType in (SHPT_MULTIPOINTZ, SHPT_MULTIPOINTM):
			size = writeDoubles(buf, size, (shape.bounds[0, 3], shape.bounds[1, 3]))
			size = writeDoubles(buf, size, shape.m)

	elif shpType in POINT_TYPES:
		if n < 1:
			raise ShpSchemaError('Cannot encode a point shape without vertex')
		size = writeDoubles(buf, 12, (shape.x[0], shape.y[0]))
		if shpType == SHPT_POINTZ:
			size = writeDoubles(buf, size, shape.z[:1])
		if shape.measureUsed and shpType in (SHPT_POINTZ, SHPT_POINTM):
			size = writeDoubles(buf, size, shape.m[:1])

	elif shpType == SHPT_NULL:
		size = 12

	else:
		raise ShpSchemaError('Cannot encode unknown shape type {}'.format(shpType))

	packInt32(buf, 8, shpType, LITTLE)
	return buf, size


##############
## Decoding

def _corrupt(hooks, message):
	hooks.error(message)
	raise ShpCorruptError(message)


def decodeRecord(rec, entitySize, shapeId, shape, hooks):
	'''
	Fill `shape` (a fresh Shape or a reset BorrowedShape) from a raw record
	buffer holding `entitySize` bytes, header included.
	Every count read from the record is checked against the record size
	before being trusted.
	'''
	shpType = unpackInt32(rec, 8, LITTLE)
	shape.shpType = shpType
	shape.shapeId = shapeId
	shape.measureUsed = False
	borrowed = shape.borrowed

	if shpType in ARC_TYPES:
		if 52 > entitySize:
			_corrupt(hooks, 'Corrupted .shp file : shape %d : nEntitySize = %d' % (shapeId, entitySize))
		xmin, ymin, xmax, ymax = struct.unpack_from('<4d', rec, 12)
		nPoints = unpackUInt32(rec, 48, LITTLE)
		nParts = unpackUInt32(rec, 44, LITTLE)
		if nPoints > MAX_POINTS or nParts > MAX_PARTS:
			_corrupt(hooks, 'Corrupted .shp file : shape %d, nPoints=%d, nParts=%d.' % (shapeId, nPoints, nParts))

		requiredSize = 52 + 4 * nParts + 16 * nPoints
		if shpType in (SHPT_POLYGONZ, SHPT_ARCZ, SHPT_MULTIPATCH):
			requiredSize += 16 + 8 * nPoints
		if shpType == SHPT_MULTIPATCH:
			requiredSize += 4 * nParts
		if requiredSize > entitySize:
			_corrupt(hooks, 'Corrupted .shp file : shape %d, nPoints=%d, nParts=%d, nEntitySize=%d.' % (shapeId, nPoints, nParts, entitySize))

		shape.allocate(nPoints, nParts)
		shape.bounds[0, 0], shape.bounds[0, 1] = xmin, ymin
		shape.bounds[1, 0], shape.bounds[1, 1] = xmax, ymax

		shape.partStart[:] = readInt32s(rec, 52, nParts)
		for i in range(nParts):
			ps = int(shape.partStart[i])
			if ps < 0 or (ps >= nPoints and nPoints > 0) or (ps > 0 and nPoints == 0):
				_corrupt(hooks, 'Corrupted .shp file : shape %d : panPartStart[%d] = %d, nVertices = %d' % (shapeId, i, ps, nPoints))
			if i > 0 and ps <= shape.partStart[i - 1]:
				_corrupt(hooks, 'Corrupted .shp file : shape %d : panPartStart[%d] = %d, panPartStart[%d] = %d' % (shapeId, i, ps, i - 1, shape.partStart[i - 1]))

		offset = 52 + 4 * nParts
		if shpType == SHPT_MULTIPATCH:
			shape.partType[:] = readInt32s(rec, offset, nParts)
			offset += 4 * nParts

		readXYInto(rec, offset, shape.x, shape.y)
		offset += 16 * nPoints

		if shpType in (SHPT_POLYGONZ, SHPT_ARCZ, SHPT_MULTIPATCH):
			shape.bounds[0, 2], shape.bounds[1, 2] = struct.unpack_from('<2d', rec, offset)
			readDoublesInto(rec, offset + 16, shape.z)
			offset += 16 + 8 * nPoints
		elif borrowed:
			shape.z = None

		#a measure block may follow any shape, as long as the record is big enough
		if entitySize >= offset + 16 + 8 * nPoints:
			shape.bounds[0, 3], shape.bounds[1, 3] = struct.unpack_from('<2d', rec, offset)
			readDoublesInto(rec, offset + 16, shape.m)
			shape.measureUsed = True
		elif borrowed:
			shape.m = None

	elif shpType in MULTIPOINT_TYPES:
		if 48 > entitySize:
			_corrupt(hooks, 'Corrupted .shp file : shape %d : nEntitySize = %d' % (shapeId, entitySize))
		nPoints = unpackUInt32(rec, 44, LITTLE)
		if nPoints > MAX_POINTS:
			_corrupt(hooks, 'Corrupted .shp file : shape %d : nPoints = %d' % (shapeId, nPoints))
		requiredSize = 48 + 16 * nPoints
		if shpType == SHPT_MULTIPOINTZ:
			requiredSize += 16 + 8 * nPoints
		if requiredSize > entitySize:
			_corrupt(hooks, 'Corrupted .shp file : shape %d : nPoints = %d, nEntitySize = %d' % (shapeId, nPoints, entitySize))

		shape.allocate(nPoints, 0)
		readXYInto(rec, 48, shape.x, shape.y)
		offset = 48 + 16 * nPoints
		xmin, ymin, xmax, ymax = struct.unpack_from('<4d', rec, 12)
		shape.bounds[0, 0], shape.bounds[0, 1] = xmin, ymin
		shape.bounds[1, 0], shape.bounds[1, 1] = xmax, ymax

		if shpType == SHPT_MULTIPOINTZ:
			shape.bounds[0, 2], shape.bounds[1, 2] = struct.unpack_from('<2d', rec, offset)
			readDoublesInto(rec, offset + 16, shape.z)
			offset += 16 + 8 * nPoints
		elif borrowed:
			shape.z = None

		if entitySize >= offset + 16 + 8 * nPoints:
			shape.bounds[0, 3], shape.bounds[1, 3] = struct.unpack_from('<2d', rec, offset)
			readDoublesInto(rec, offset + 16, shape.m)
			shape.measureUsed = True
		elif borrowed:
			shape.m = None

	elif shpType in POINT_TYPES:
		if borrowed:
			shape.aliasBounds()
		else:
			shape.allocate(1, 0)
		if 28 + (8 if shpType == SHPT_POINTZ else 0) > entitySize:
			_corrupt(hooks, 'Corrupted .shp file : shape %d : nEntitySize = %d' % (shapeId, entitySize))
		shape.x[0], shape.y[0] = struct.unpack_from('<2d', rec, 12)
		offset = 28
		if shpType == SHPT_POINTZ:
			shape.z[0] = unpackDouble(rec, offset)
			offset += 8
		if entitySize >= offset + 8:
			shape.m[0] = unpackDouble(rec, offset)
			shape.measureUsed = True
		#no extents in a point record, the vertex is the bbox
		shape.bounds[0] = (shape.x[0], shape.y[0], shape.z[0], shape.m[0])
		shape.bounds[1] = shape.bounds[0]

	return shape
