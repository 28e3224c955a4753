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
Primitive codec

Shapefile words do not share one byte order : record headers and the file
length are big endian while header fields, coordinates and record contents
are little endian. Every helper here takes the wanted order explicitly so the
host order never leaks into the encoding.
'''

import sys
import struct

import numpy as np

BIG = '>'
LITTLE = '<'

#computed once, for diagnostics only
HOST_BYTEORDER = BIG if sys.byteorder == 'big' else LITTLE

#little endian runs of doubles and ints used by record contents
F8 = np.dtype('<f8')
I4 = np.dtype('<i4')


def swapWord(buf, offset, length):
	'''Reverse in place `length` bytes of a bytearray starting at `offset`'''
	buf[offset:offset+length] = buf[offset:offset+length][::-1]


def unpackInt32(buf, offset, order):
	return struct.unpack_from(order + 'i', buf, offset)[0]

def packInt32(buf, offset, value, order):
	struct.pack_into(order + 'i', buf, offset, value)

def unpackUInt32(buf, offset, order):
	return struct.unpack_from(order + 'I', buf, offset)[0]

def packUInt32(buf, offset, value, order):
	struct.pack_into(order + 'I', buf, offset, value)

def unpackDouble(buf, offset, order=LITTLE):
	return struct.unpack_from(order + 'd', buf, offset)[0]

def packDouble(buf, offset, value, order=LITTLE):
	struct.pack_into(order + 'd', buf, offset, value)


def _view(buf, dtype, count, offset):
	if count == 0:
		return np.empty(0, dtype=dtype)
	return np.frombuffer(buf, dtype=dtype, count=count, offset=offset)


def readDoubles(buf, offset, count):
	'''Copy `count` little endian doubles into a native float64 array'''
	return _view(buf, F8, count, offset).astype(np.float64)

def writeDoubles(buf, offset, values):
	'''Write a sequence of doubles as little endian, return the next offset'''
	data = np.asarray(values, dtype=F8).tobytes()
	buf[offset:offset+len(data)] = data
	return offset + len(data)

def readInt32s(buf, offset, count):
	return _view(buf, I4, count, offset).astype(np.int32)

def writeInt32s(buf, offset, values):
	data = np.asarray(values, dtype=I4).tobytes()
	buf[offset:offset+len(data)] = data
	return offset + len(data)


def readXY(buf, offset, count):
	'''Split `count` interleaved little endian (x, y) pairs into two arrays'''
	xy = _view(buf, F8, 2*count, offset).reshape(count, 2)
	return xy[:,0].astype(np.float64), xy[:,1].astype(np.float64)

def writeXY(buf, offset, x, y):
	xy = np.empty((len(x), 2), dtype=F8)
	xy[:,0] = x
	xy[:,1] = y
	data = xy.tobytes()
	buf[offset:offset+len(data)] = data
	return offset + len(data)

def readDoublesInto(buf, offset, out):
	'''Same as readDoubles but fill a preallocated array (fast read mode)'''
	out[:] = _view(buf, F8, len(out), offset)

def readXYInto(buf, offset, x, y):
	count = len(x)
	xy = _view(buf, F8, 2*count, offset).reshape(count, 2)
	x[:] = xy[:,0]
	y[:] = xy[:,1]
