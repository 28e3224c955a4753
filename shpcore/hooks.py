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

import os
import re

_FLOAT_PREFIX = re.compile(r'\s*([+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?)')
_INT_PREFIX = re.compile(r'\s*([+-]?\d+)')


class IOHooks():
	'''
	Capability table used by the geometry and attribute stores for every
	file access. Methods return sentinels instead of raising so that the
	stores decide how a failure is reported.
	Subclass it to redirect storage or to capture diagnostics.
	'''

	def fopen(self, path, mode):
		if 'b' not in mode:
			mode = mode + 'b'
		try:
			return open(path, mode)
		except OSError:
			log.debug('Cannot open {} in {} mode'.format(path, mode))
			return None

	def fread(self, fp, size):
		try:
			return fp.read(size)
		except OSError:
			return b''

	def fwrite(self, fp, data):
		try:
			n = fp.write(data)
		except OSError:
			return 0
		return len(data) if n is None else n

	def fseek(self, fp, offset, whence=0):
		try:
			fp.seek(offset, whence)
		except (OSError, ValueError):
			return -1
		return 0

	def ftell(self, fp):
		return fp.tell()

	def fflush(self, fp):
		try:
			fp.flush()
		except OSError:
			return -1
		return 0

	def fclose(self, fp):
		try:
			fp.close()
		except OSError:
			return -1
		return 0

	def remove(self, path):
		try:
			os.remove(path)
		except OSError:
			return -1
		return 0

	def error(self, message):
		log.error(message)

	def atof(self, text):
		'''Parse the longest numeric prefix, C locale, 0.0 if there is none'''
		if isinstance(text, bytes):
			text = text.decode('ascii', 'replace')
		match = _FLOAT_PREFIX.match(text)
		if match is None:
			return 0.0
		return float(match.group(1))

	def atoi(self, text):
		if isinstance(text, bytes):
			text = text.decode('ascii', 'replace')
		match = _INT_PREFIX.match(text)
		if match is None:
			return 0
		return int(match.group(1))


defaultHooks = IOHooks()


def lenWithoutExtension(path):
	'''Length of `path` once its extension (if any) is stripped'''
	for i in range(len(path) - 1, 0, -1):
		if path[i] in ('/', '\\'):
			break
		if path[i] == '.':
			return i
	return len(path)
