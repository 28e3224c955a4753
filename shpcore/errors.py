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


class ShapelibError(Exception):
	'''Base class of every error raised by shpcore'''
	def __init__(self, value):
		self.value = value
	def __str__(self):
		return str(self.value)

class ShpIOError(ShapelibError):
	'''Open, read, write or seek failure at the file boundary'''
	pass

class ShpCorruptError(ShapelibError):
	'''Implausible count, size, offset or part table read from a file'''
	pass

class ShpSchemaError(ShapelibError):
	'''Shape type mismatch or field schema limit reached'''
	pass

class ShpAllocationError(ShapelibError):
	'''Requested buffer exceeds what the format can address'''
	pass

class ShpUsageError(ShapelibError):
	'''Invalid call sequence or argument'''
	pass

class FieldOverflowError(ShapelibError):
	'''An attribute value did not fit its field width (strict mode only)'''
	def __init__(self, value, result=None):
		self.value = value
		self.result = result
