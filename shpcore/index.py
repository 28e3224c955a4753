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

import numpy as np

#one descriptor per record : byte position in the .shp and content length
#(the 8 bytes record header excluded)
DESCRIPTOR = np.dtype([('offset', np.int64), ('size', np.int64)])

#.shx entries are big endian (offset, length) pairs counted in 16 bits words
SHX_ENTRY = np.dtype('>u4')


class RecordIndex():
	'''
	Ordered and growable container of record descriptors.
	Capacity grows by a third plus 100 slots when an append does not fit,
	the same amortized policy for both lazy and eager loading.
	'''

	def __init__(self, count=0):
		self.entries = np.zeros(max(1, count), dtype=DESCRIPTOR)
		self.count = count

	def __len__(self):
		return self.count

	@property
	def capacity(self):
		return len(self.entries)

	def reserve(self):
		'''Make room for one more descriptor'''
		if self.count + 1 > self.capacity:
			cap = self.capacity
			newCap = cap + cap // 3 + 100
			entries = np.zeros(newCap, dtype=DESCRIPTOR)
			entries[:self.count] = self.entries[:self.count]
			self.entries = entries

	def append(self, offset, size):
		self.reserve()
		i = self.count
		self.entries[i] = (offset, size)
		self.count += 1
		return i

	def offset(self, i):
		return int(self.entries['offset'][i])

	def size(self, i):
		return int(self.entries['size'][i])

	def set(self, i, offset=None, size=None):
		if offset is not None:
			self.entries['offset'][i] = offset
		if size is not None:
			self.entries['size'][i] = size

	@staticmethod
	def parseSHX(body, count):
		'''Return the raw (offset, length) word pairs of a .shx body as a (count, 2) array'''
		if count == 0:
			return np.zeros((0, 2), dtype=np.int64)
		return np.frombuffer(body, dtype=SHX_ENTRY, count=2*count).reshape(count, 2).astype(np.int64)

	def load(self, words):
		'''Fill descriptors from validated word pairs'''
		n = len(words)
		self.entries[:n]['offset'] = words[:,0] * 2
		self.entries[:n]['size'] = words[:,1] * 2

	def toSHX(self):
		'''Serialize the descriptors as a .shx body'''
		words = np.empty((self.count, 2), dtype=SHX_ENTRY)
		words[:,0] = self.entries['offset'][:self.count] // 2
		words[:,1] = self.entries['size'][:self.count] // 2
		return words.tobytes()
