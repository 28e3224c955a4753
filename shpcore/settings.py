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
import os
import json
import logging

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def isValidCodePage(codePage):
	'''A code page is either None, a LDID/n label or any non empty cpg string'''
	if codePage is None:
		return True
	return isinstance(codePage, str) and len(codePage) > 0


class Settings():

	def __init__(self, **kwargs):
		self._log_level = kwargs['log_level']
		self._default_codepage = kwargs['default_codepage']
		self.restore_shx = bool(kwargs['restore_shx'])
		self.trim_dbf_whitespace = bool(kwargs['trim_dbf_whitespace'])
		self.multipatch_measure = bool(kwargs['multipatch_measure'])
		self.strict_writes = bool(kwargs['strict_writes'])

	@property
	def log_level(self):
		return self._log_level

	@log_level.setter
	def log_level(self, level):
		level = str(level).upper()
		if level not in LOG_LEVELS:
			raise ValueError('Invalid log level : ' + level)
		else:
			self._log_level = level
			logging.getLogger('shpcore').setLevel(level)

	@property
	def default_codepage(self):
		return self._default_codepage

	@default_codepage.setter
	def default_codepage(self, codePage):
		if not isValidCodePage(codePage):
			raise ValueError('Invalid code page : ' + repr(codePage))
		else:
			self._default_codepage = codePage

	def __repr__(self):
		return '\n'.join([
		"* shpcore settings :",
		" log level {}".format(self.log_level),
		" default code page {}".format(self.default_codepage),
		" restore shx {}".format(self.restore_shx),
		" trim dbf whitespace {}".format(self.trim_dbf_whitespace),
		" multipatch measure {}".format(self.multipatch_measure),
		" strict writes {}".format(self.strict_writes)
		])


cfgFile = os.path.join(os.path.dirname(__file__), "settings.json")

with open(cfgFile, 'r') as cfg:
		prefs = json.load(cfg)

settings = Settings(**prefs)
