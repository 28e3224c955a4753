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


class BBOX(dict):
	'''A class to represent a bounding box over the X, Y, Z and M channels'''

	def __init__(self, *args, **kwargs):
		'''
		Three ways for init a BBOX class:
		- from a list of values ordered from min to max
			>> BBOX(xmin, ymin, xmax, ymax) or BBOX(xmin, ymin, zmin, mmin, xmax, ymax, zmax, mmax)
		- from a tuple containing the same list of values
			>> BBOX( (xmin, ymin, xmax, ymax) )
		- from keyword arguments with no particular order
			>> BBOX(xmin=, ymin=, xmax=, ymax=, [zmin=, zmax=, mmin=, mmax=])
		Missing Z and M ranges default to 0
		'''
		self.zmin = self.zmax = self.mmin = self.mmax = 0.0
		if args:
			if len(args) == 1: #maybe we pass directly a tuple
				args = args[0]
			args = [float(v) for v in args]
			if len(args) == 4:
				self.xmin, self.ymin, self.xmax, self.ymax = args
			elif len(args) == 8:
				self.xmin, self.ymin, self.zmin, self.mmin, self.xmax, self.ymax, self.zmax, self.mmax = args
			else:
				raise ValueError('BBOX() initialization expects 4 or 8 arguments, got %g' % len(args))
		elif kwargs:
			if not all( [kw in kwargs for kw in ['xmin', 'ymin', 'xmax', 'ymax']] ):
				raise ValueError('invalid keyword arguments')
			for k, v in kwargs.items():
				setattr(self, k, float(v))
		else:
			self.xmin = self.ymin = self.xmax = self.ymax = 0.0

	@classmethod
	def fromMinMax(cls, mins, maxs):
		'''Create a BBOX from two (x, y, z, m) sequences'''
		return cls(*(list(mins) + list(maxs)))

	def toMinMax(self):
		'''Export to two lists of (x, y, z, m) values'''
		return [self.xmin, self.ymin, self.zmin, self.mmin], [self.xmax, self.ymax, self.zmax, self.mmax]

	def __str__(self):
		return 'xmin:%g, ymin:%g, zmin:%g, mmin:%g, xmax:%g, ymax:%g, zmax:%g, mmax:%g' % tuple(self)

	def __repr__(self):
		return 'BBOX(' + str(self) + ')'

	def __getitem__(self, attr):
		'''access attributes like a dictionnary'''
		return getattr(self, attr)

	def __setitem__(self, key, value):
		'''set attributes like a dictionnary'''
		setattr(self, key, value)

	def __iter__(self):
		'''iterate over values in min then max order, allows unpacking'''
		mins, maxs = self.toMinMax()
		return iter(mins + maxs)

	def keys(self):
		'''override dict keys() method'''
		return self.__dict__.keys()

	def items(self):
		'''override dict items() method'''
		return self.__dict__.items()

	def values(self):
		'''override dict values() method'''
		return self.__dict__.values()

	def __eq__(self, bb):
		'''Test if 2 bbox are equals'''
		return tuple(self) == tuple(bb)

	def __ne__(self, bb):
		return not self.__eq__(bb)
