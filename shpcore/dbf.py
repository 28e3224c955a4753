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

from .codec import LITTLE, packUInt32, unpackUInt32
from .hooks import defaultHooks, lenWithoutExtension
from .errors import ShpIOError, ShpCorruptError, ShpUsageError, FieldOverflowError
from .settings import settings

#field types as seen by callers
FTString = 0
FTInteger = 1
FTDouble = 2
FTLogical = 3
FTDate = 4
FTInvalid = 5

FIELD_TYPE_NAMES = ['String', 'Integer', 'Double', 'Logical', 'Date', 'Invalid']

FILE_HEADER_SIZE = 32
FIELD_HEADER_SIZE = 32
FIELD_NAME_LEN_READ = 11
FIELD_NAME_LEN_WRITE = 10
FIELD_MAX_WIDTH = 255
MAX_HEADER_LENGTH = 65535
MAX_RECORD_LENGTH = 65535
#largest formatted number, the field width is capped to it
MAX_NUMBER_WIDTH = 398

HEADER_RECORD_TERMINATOR = 0x0D
END_OF_FILE_CHARACTER = 0x1A

#attribute bytes are mapped 1:1 to str, no transcoding
ENCODING = 'latin-1'

ACCESS_MODES = {'r':'rb', 'r+':'rb+', 'rb':'rb', 'rb+':'rb+', 'r+b':'r+b'}


def _toBytes(value):
	if isinstance(value, (bytes, bytearray)):
		return bytes(value)
	return str(value).encode(ENCODING, 'replace')

def _cString(raw):
	'''Field bytes up to the first NUL'''
	return bytes(raw).split(b'\0', 1)[0]


def getNullCharacter(chType):
	'''Fill character of a NULL value for a native field type'''
	if chType in ('N', 'F'):
		return '*'
	if chType == 'D':
		return '0'
	if chType == 'L':
		return '?'
	return ' '


def isValueNULL(chType, value):
	'''
	Tell if a field text is a NULL value.
	Numeric : first char is '*' or only blanks.
	Date : '00000000', a single space or zero, or nothing at all.
	Logical : first char is '?'. String : empty.
	'''
	if value is None:
		return True
	if isinstance(value, (bytes, bytearray)):
		value = bytes(value).decode(ENCODING)
	if chType in ('N', 'F'):
		if value[:1] == '*':
			return True
		return value.strip(' ') == ''
	if chType == 'D':
		return value[:8] == '00000000' or value in (' ', '0', '')
	if chType == 'L':
		return value[:1] == '?'
	return len(value) == 0


class WriteResult():
	'''
	Outcome of an attribute write. It is falsy when the value was rejected
	or truncated, `truncated` tells the latter apart.
	'''

	def __init__(self, ok=True, truncated=False, message=None):
		self.ok = ok
		self.truncated = truncated
		self.message = message

	def __bool__(self):
		return self.ok

	def __repr__(self):
		if self.ok:
			return 'WriteResult(ok)'
		return 'WriteResult(failed, truncated={}, {})'.format(self.truncated, self.message)


class AttributeStore():
	'''
	Fixed width table of a .dbf file with a single record write back cache.
	Record i is loaded on demand, a modified record is flushed before another
	one is loaded, before any schema change and on close.
	'''

	def __init__(self, hooks=None):
		self.hooks = hooks if hooks is not None else defaultHooks
		self.path = None
		self.fp = None
		self.nRecords = 0
		self.recordLength = 1
		self.headerLength = FILE_HEADER_SIZE + 1
		self.fieldOffset = []
		self.fieldSize = []
		self.fieldDecimals = []
		self.fieldType = []
		self.header = bytearray()
		self.record = bytearray(1)
		self.currentRecord = -1
		self.currentRecordModified = False
		self.noHeader = False
		self.updated = False
		self.updateYearSince1900 = 95
		self.updateMonth = 7
		self.updateDay = 26
		self.languageDriver = 0
		self.codePage = None
		self.writeEndOfFileChar = True
		self.requireNextWriteSeek = True

	def _fail(self, errCls, message):
		self.hooks.error(message)
		raise errCls(message)

	@property
	def nFields(self):
		return len(self.fieldType)


	##############
	## Open / create

	@classmethod
	def open(cls, path, access='rb', hooks=None):
		store = cls(hooks)
		if access not in ACCESS_MODES:
			store._fail(ShpUsageError, 'Invalid access mode {} for .dbf file'.format(access))
		access = ACCESS_MODES[access]

		base = path[:lenWithoutExtension(path)]
		store.path = base
		fp = store.hooks.fopen(base + '.dbf', access)
		if fp is None:
			fp = store.hooks.fopen(base + '.DBF', access)
		if fp is None:
			store._fail(ShpIOError, 'Unable to open {0}.dbf or {0}.DBF'.format(base))
		store.fp = fp

		try:
			store._readHeader()
		except (ShpIOError, ShpCorruptError):
			store.hooks.fclose(fp)
			store.fp = None
			raise
		store._readCodePage(base)

		log.debug('Opened {}.dbf : {} records, {} fields'.format(base, store.nRecords, store.nFields))
		return store

	def _readHeader(self):
		buf = self.hooks.fread(self.fp, FILE_HEADER_SIZE)
		if len(buf) != FILE_HEADER_SIZE:
			self._fail(ShpIOError, 'Cannot read .dbf header')

		self.updateYearSince1900, self.updateMonth, self.updateDay = buf[1], buf[2], buf[3]
		self.nRecords = unpackUInt32(buf, 4, LITTLE) & 0x7fffffff
		self.headerLength, self.recordLength = struct.unpack_from('<HH', buf, 8)
		self.languageDriver = buf[29]

		if self.recordLength == 0 or self.headerLength < FILE_HEADER_SIZE:
			self._fail(ShpCorruptError, 'Invalid .dbf header : record length {}, header length {}'.format(self.recordLength, self.headerLength))

		nFields = (self.headerLength - FILE_HEADER_SIZE) // FIELD_HEADER_SIZE
		self.record = bytearray(self.recordLength)

		descriptors = self.hooks.fread(self.fp, self.headerLength - FILE_HEADER_SIZE)
		if len(descriptors) != self.headerLength - FILE_HEADER_SIZE:
			self._fail(ShpIOError, 'Cannot read .dbf field descriptors')

		for i in range(nFields):
			info = descriptors[i*FIELD_HEADER_SIZE:(i+1)*FIELD_HEADER_SIZE]
			if info[0] == HEADER_RECORD_TERMINATOR:
				nFields = i
				break
			chType = chr(info[11])
			width = info[16]
			decimals = info[17] if chType in ('N', 'F') else 0
			offset = 1 if i == 0 else self.fieldOffset[i-1] + self.fieldSize[i-1]
			if offset + width > self.recordLength:
				self._fail(ShpCorruptError, 'Field {} overflows the .dbf record length {}'.format(i, self.recordLength))
			self.fieldType.append(chType)
			self.fieldSize.append(width)
			self.fieldDecimals.append(decimals)
			self.fieldOffset.append(offset)

		self.header = bytearray(descriptors[:nFields*FIELD_HEADER_SIZE])

	def _readCodePage(self, base):
		cpg = self.hooks.fopen(base + '.cpg', 'r')
		if cpg is None:
			cpg = self.hooks.fopen(base + '.CPG', 'r')
		if cpg is not None:
			text = self.hooks.fread(cpg, 499)
			self.hooks.fclose(cpg)
			line = text.split(b'\n', 1)[0].split(b'\r', 1)[0]
			if line:
				self.codePage = line.decode(ENCODING)
		if self.codePage is None and self.languageDriver != 0:
			self.codePage = 'LDID/{}'.format(self.languageDriver)

	@classmethod
	def create(cls, path, codePage=None, hooks=None):
		'''
		Create an empty table. codePage defaults to the configured one, pass
		an empty string for none. LDID/n labels go in the header, anything
		else in a .cpg file.
		'''
		store = cls(hooks)
		hooks = store.hooks
		if codePage is None:
			codePage = settings.default_codepage

		base = path[:lenWithoutExtension(path)]
		store.path = base
		store.fp = hooks.fopen(base + '.dbf', 'wb+')
		if store.fp is None:
			store._fail(ShpIOError, 'Failed to create file {}.dbf'.format(base))

		cpgName = base + '.cpg'
		ldid = -1
		if codePage:
			if codePage.startswith('LDID/'):
				ldid = hooks.atoi(codePage[5:])
				if ldid > 255:
					#not a byte, keep the label in the .cpg file
					ldid = -1
			if ldid < 0:
				cpg = hooks.fopen(cpgName, 'w')
				if cpg is None:
					log.warning('Cannot write code page file {}'.format(cpgName))
				else:
					hooks.fwrite(cpg, _toBytes(codePage))
					hooks.fclose(cpg)
		if not codePage or ldid >= 0:
			hooks.remove(cpgName)

		store.codePage = codePage or None
		store.languageDriver = ldid if ldid > 0 else 0
		store.noHeader = True
		log.debug('Created {}.dbf with code page {}'.format(base, store.codePage))
		return store

	def cloneEmpty(self, path):
		'''New table sharing this schema and code page, reopened for update'''
		clone = AttributeStore.create(path, self.codePage or '', self.hooks)
		clone.recordLength = self.recordLength
		clone.headerLength = self.headerLength
		clone.header = bytearray(self.header)
		clone.fieldOffset = list(self.fieldOffset)
		clone.fieldSize = list(self.fieldSize)
		clone.fieldDecimals = list(self.fieldDecimals)
		clone.fieldType = list(self.fieldType)
		clone.record = bytearray(self.recordLength)
		clone.noHeader = True
		clone.updated = True
		clone.writeEndOfFileChar = self.writeEndOfFileChar
		clone.writeHeader()
		clone.close()

		clone = AttributeStore.open(path, 'rb+', self.hooks)
		clone.writeEndOfFileChar = self.writeEndOfFileChar
		return clone


	##############
	## Header and record cache

	def _fileHeader(self):
		buf = bytearray(FILE_HEADER_SIZE)
		buf[0] = 0x03
		buf[1], buf[2], buf[3] = self.updateYearSince1900, self.updateMonth, self.updateDay
		packUInt32(buf, 4, self.nRecords, LITTLE)
		struct.pack_into('<HH', buf, 8, self.headerLength, self.recordLength)
		buf[29] = self.languageDriver
		return buf

	def writeHeader(self):
		'''Write the header and field descriptors of a table not yet on disk'''
		if not self.noHeader:
			return
		self.noHeader = False
		hooks = self.hooks

		hooks.fseek(self.fp, 0, 0)
		hooks.fwrite(self.fp, bytes(self._fileHeader()))
		hooks.fwrite(self.fp, bytes(self.header))

		if self.headerLength > FIELD_HEADER_SIZE * self.nFields + FILE_HEADER_SIZE:
			hooks.fwrite(self.fp, bytes([HEADER_RECORD_TERMINATOR]))

		if self.nRecords == 0 and self.writeEndOfFileChar:
			hooks.fwrite(self.fp, bytes([END_OF_FILE_CHARACTER]))
		self.requireNextWriteSeek = True

	def flushRecord(self):
		'''Write back the cached record if it was modified'''
		if not self.currentRecordModified or self.currentRecord < 0:
			return True
		hooks = self.hooks
		self.currentRecordModified = False
		offset = self.recordLength * self.currentRecord + self.headerLength

		if self.requireNextWriteSeek or hooks.ftell(self.fp) != offset:
			if hooks.fseek(self.fp, offset, 0) != 0:
				self._fail(ShpIOError, 'Failure seeking to position before writing DBF record {}.'.format(self.currentRecord))
		if hooks.fwrite(self.fp, bytes(self.record)) != self.recordLength:
			self._fail(ShpIOError, 'Failure writing DBF record {}.'.format(self.currentRecord))
		self.requireNextWriteSeek = False

		if self.currentRecord == self.nRecords - 1 and self.writeEndOfFileChar:
			hooks.fwrite(self.fp, bytes([END_OF_FILE_CHARACTER]))
		return True

	def loadRecord(self, i):
		'''Make record i the cached one'''
		if self.currentRecord == i:
			return True
		self.flushRecord()
		hooks = self.hooks
		offset = self.recordLength * i + self.headerLength
		if hooks.fseek(self.fp, offset, 0) != 0:
			self._fail(ShpIOError, 'fseek({}) failed on DBF file.'.format(offset))
		data = hooks.fread(self.fp, self.recordLength)
		if len(data) != self.recordLength:
			self._fail(ShpIOError, 'fread({}) failed on DBF file.'.format(self.recordLength))
		self.record = bytearray(data)
		self.currentRecord = i
		#reading moved the file position, next write cannot trust it
		self.requireNextWriteSeek = True
		return True

	def updateHeader(self):
		'''Patch record count and date in the on disk header'''
		hooks = self.hooks
		if self.noHeader:
			self.writeHeader()
		self.flushRecord()

		hooks.fseek(self.fp, 0, 0)
		buf = bytearray(hooks.fread(self.fp, FILE_HEADER_SIZE))
		if len(buf) != FILE_HEADER_SIZE:
			self._fail(ShpIOError, 'Cannot read back .dbf header')
		buf[1], buf[2], buf[3] = self.updateYearSince1900, self.updateMonth, self.updateDay
		packUInt32(buf, 4, self.nRecords, LITTLE)

		hooks.fseek(self.fp, 0, 0)
		hooks.fwrite(self.fp, bytes(buf))
		hooks.fflush(self.fp)
		self.requireNextWriteSeek = True

	def close(self):
		if self.fp is None:
			return
		if self.noHeader:
			self.writeHeader()
		self.flushRecord()
		if self.updated:
			self.updateHeader()
		self.hooks.fclose(self.fp)
		self.fp = None
		self.record = bytearray()
		log.debug('Closed {}.dbf'.format(self.path))

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc_value, traceback):
		self.close()

	def __len__(self):
		return self.nRecords

	def __repr__(self):
		return '\n'.join([
		"* Attribute store :",
		" path {}".format(self.path),
		" records {}".format(self.nRecords),
		" fields {}".format(self.nFields),
		" record length {}".format(self.recordLength),
		" header length {}".format(self.headerLength),
		" code page {}".format(self.codePage)
		])

	def setLastModifiedDate(self, yearSince1900, month, day):
		self.updateYearSince1900 = yearSince1900
		self.updateMonth = month
		self.updateDay = day

	def setWriteEndOfFileChar(self, enabled):
		self.writeEndOfFileChar = enabled

	def _writeEndOfFile(self):
		if self.writeEndOfFileChar:
			self.hooks.fseek(self.fp, self.recordLength * self.nRecords + self.headerLength, 0)
			self.hooks.fwrite(self.fp, bytes([END_OF_FILE_CHARACTER]))

	def _readRaw(self, offset, length):
		'''Read a record during a file rewrite, None on failure'''
		if self.hooks.fseek(self.fp, offset, 0) != 0:
			return None
		data = self.hooks.fread(self.fp, length)
		if len(data) != length:
			return None
		return bytearray(data)

	def _writeRaw(self, offset, data):
		self.hooks.fseek(self.fp, offset, 0)
		self.hooks.fwrite(self.fp, bytes(data))


	##############
	## Schema

	def getFieldCount(self):
		return self.nFields

	def getRecordCount(self):
		return self.nRecords

	def getCodePage(self):
		return self.codePage

	def getFieldInfo(self, iField):
		'''Return (fieldType, name, width, decimals), fieldType is FTInvalid for a bad index'''
		if iField < 0 or iField >= self.nFields:
			return FTInvalid, None, 0, 0
		raw = self.header[iField*FIELD_HEADER_SIZE:iField*FIELD_HEADER_SIZE + FIELD_NAME_LEN_READ]
		name = _cString(raw).rstrip(b' ').decode(ENCODING)
		width = self.fieldSize[iField]
		decimals = self.fieldDecimals[iField]
		chType = self.fieldType[iField]
		if chType == 'L':
			fieldType = FTLogical
		elif chType == 'D':
			fieldType = FTDate
		elif chType in ('N', 'F'):
			if decimals > 0 or width >= 10:
				fieldType = FTDouble
			else:
				fieldType = FTInteger
		else:
			fieldType = FTString
		return fieldType, name, width, decimals

	def getFieldIndex(self, name):
		'''Case insensitive field lookup, -1 if not found'''
		for i in range(self.nFields):
			if self.getFieldInfo(i)[1].upper() == name.upper():
				return i
		return -1

	def getNativeFieldType(self, iField):
		if 0 <= iField < self.nFields:
			return self.fieldType[iField]
		return ' '

	@property
	def fieldNames(self):
		return [self.getFieldInfo(i)[1] for i in range(self.nFields)]

	def _descriptor(self, name, chType, width, decimals):
		info = bytearray(FIELD_HEADER_SIZE)
		name = _toBytes(name)[:FIELD_NAME_LEN_WRITE]
		info[:len(name)] = name
		info[11] = ord(chType)
		if chType == 'C':
			info[16] = width % 256
			info[17] = width // 256
		else:
			info[16] = width
			info[17] = decimals
		return info

	def addField(self, name, fieldType, width, decimals):
		'''Add a field of a FT* type, return its index or -1'''
		if fieldType == FTLogical:
			chType = 'L'
		elif fieldType == FTDate:
			chType = 'D'
		elif fieldType == FTString:
			chType = 'C'
		else:
			chType = 'N'
		return self.addNativeFieldType(name, chType, width, decimals)

	def addNativeFieldType(self, name, chType, width, decimals):
		'''
		Add a field given its native type char. Existing records are rewritten
		last to first with the new field set to NULL, since every record moves
		toward the end of the file.
		'''
		self.flushRecord()
		if self.headerLength + FIELD_HEADER_SIZE > MAX_HEADER_LENGTH:
			self.hooks.error('Cannot add field {}. Header length limit reached (max 65535 bytes, 2046 fields).'.format(name))
			return -1
		if width < 1:
			self.hooks.error('Cannot add field {}. Invalid width {}.'.format(name, width))
			return -1
		width = min(width, FIELD_MAX_WIDTH)
		if self.recordLength + width > MAX_RECORD_LENGTH:
			self.hooks.error('Cannot add field {}. Record length limit reached (max 65535 bytes).'.format(name))
			return -1

		oldRecordLength = self.recordLength
		oldHeaderLength = self.headerLength

		self.fieldOffset.append(self.recordLength)
		self.fieldSize.append(width)
		self.fieldDecimals.append(decimals)
		self.fieldType.append(chType)
		self.recordLength += width
		self.headerLength += FIELD_HEADER_SIZE
		self.updated = False
		self.header += self._descriptor(name, chType, width, decimals)
		self.record = bytearray(self.recordLength)

		if self.noHeader:
			return self.nFields - 1

		fill = _toBytes(getNullCharacter(chType)) * width
		for i in range(self.nRecords - 1, -1, -1):
			rec = self._readRaw(oldRecordLength * i + oldHeaderLength, oldRecordLength)
			if rec is None:
				self.hooks.error('Cannot read record {} while adding field {}.'.format(i, name))
				return -1
			rec += fill
			self._writeRaw(self.recordLength * i + self.headerLength, rec)

		if self.nRecords > 0:
			self._writeEndOfFile()

		self.noHeader = True
		self.updateHeader()
		self.currentRecord = -1
		self.currentRecordModified = False
		self.updated = True
		return self.nFields - 1

	def deleteField(self, iField):
		'''Remove a field, records are compacted first to last'''
		if iField < 0 or iField >= self.nFields:
			self.hooks.error('Cannot delete field {}. Invalid field index.'.format(iField))
			return False
		self.flushRecord()

		oldRecordLength = self.recordLength
		oldHeaderLength = self.headerLength
		deletedOffset = self.fieldOffset[iField]
		deletedSize = self.fieldSize[iField]

		for i in range(iField + 1, self.nFields):
			self.fieldOffset[i] -= deletedSize
		for table in (self.fieldOffset, self.fieldSize, self.fieldDecimals, self.fieldType):
			del table[iField]

		self.headerLength -= FIELD_HEADER_SIZE
		self.recordLength -= deletedSize
		del self.header[iField*FIELD_HEADER_SIZE:(iField+1)*FIELD_HEADER_SIZE]
		self.record = bytearray(self.recordLength)

		if self.noHeader and self.nRecords == 0:
			return True

		self.noHeader = True
		self.updateHeader()

		for i in range(self.nRecords):
			rec = self._readRaw(oldRecordLength * i + oldHeaderLength, oldRecordLength)
			if rec is None:
				self.hooks.error('Cannot read record {} while deleting field {}.'.format(i, iField))
				return False
			del rec[deletedOffset:deletedOffset + deletedSize]
			self._writeRaw(self.recordLength * i + self.headerLength, rec)

		self._writeEndOfFile()

		self.currentRecord = -1
		self.currentRecordModified = False
		self.updated = True
		return True

	def reorderFields(self, permutation):
		'''
		Reorder fields, field i of the result being field permutation[i].
		Records are rewritten in place. A read failure leaves the schema
		unchanged.
		'''
		if self.nFields == 0:
			return True
		if sorted(permutation) != list(range(self.nFields)):
			self.hooks.error('Cannot reorder fields. {} is not a permutation of the {} fields.'.format(list(permutation), self.nFields))
			return False
		self.flushRecord()

		newSize = [self.fieldSize[j] for j in permutation]
		newDecimals = [self.fieldDecimals[j] for j in permutation]
		newType = [self.fieldType[j] for j in permutation]
		newOffset = [1]
		for i in range(1, self.nFields):
			newOffset.append(newOffset[i-1] + newSize[i-1])
		oldHeader = self.header
		self.header = bytearray().join(oldHeader[j*FIELD_HEADER_SIZE:(j+1)*FIELD_HEADER_SIZE] for j in permutation)

		errorAbort = False
		for i in range(self.nRecords):
			offset = self.recordLength * i + self.headerLength
			rec = self._readRaw(offset, self.recordLength)
			if rec is None:
				self.hooks.error('Cannot read record {} while reordering fields. Schema left unchanged.'.format(i))
				errorAbort = True
				break
			newRec = bytearray(self.recordLength)
			newRec[0] = rec[0]
			for iField, j in enumerate(permutation):
				src = self.fieldOffset[j]
				newRec[newOffset[iField]:newOffset[iField] + newSize[iField]] = rec[src:src + self.fieldSize[j]]
			self._writeRaw(offset, newRec)

		self.currentRecord = -1
		self.currentRecordModified = False
		if errorAbort:
			self.header = oldHeader
			self.updated = False
			return False

		self.fieldOffset, self.fieldSize, self.fieldDecimals, self.fieldType = newOffset, newSize, newDecimals, newType
		#descriptors reach the disk only once every record is rewritten
		if not (self.noHeader and self.nRecords == 0):
			self.noHeader = True
			self.updateHeader()
		self.updated = True
		return True

	def alterFieldDefn(self, iField, name, chType, width, decimals):
		'''
		Change name, native type, width or decimals of a field.
		A shrink or a type change rewrites records first to last, a growth
		last to first. Numeric values stay right aligned and NULL values get
		the fill of the new type.
		'''
		if iField < 0 or iField >= self.nFields:
			self.hooks.error('Cannot alter field {}. Invalid field index.'.format(iField))
			return False
		self.flushRecord()

		oldType = self.fieldType[iField]
		offset = self.fieldOffset[iField]
		oldWidth = self.fieldSize[iField]
		oldRecordLength = self.recordLength

		if width < 1:
			self.hooks.error('Cannot alter field {}. Invalid width {}.'.format(name, width))
			return False
		width = min(width, FIELD_MAX_WIDTH)
		if self.recordLength + width - oldWidth > MAX_RECORD_LENGTH:
			self.hooks.error('Cannot alter field {}. Record length limit reached (max 65535 bytes).'.format(name))
			return False

		self.fieldSize[iField] = width
		self.fieldDecimals[iField] = decimals
		self.fieldType[iField] = chType
		self.header[iField*FIELD_HEADER_SIZE:(iField+1)*FIELD_HEADER_SIZE] = self._descriptor(name, chType, width, decimals)

		if width != oldWidth:
			for i in range(iField + 1, self.nFields):
				self.fieldOffset[i] += width - oldWidth
			self.recordLength += width - oldWidth
			self.record = bytearray(self.recordLength)

		if self.noHeader and self.nRecords == 0:
			return True

		self.noHeader = True
		self.updateHeader()

		newFill = _toBytes(getNullCharacter(chType)) * width
		errorAbort = False
		if width < oldWidth or (width == oldWidth and chType != oldType):
			for i in range(self.nRecords):
				rec = self._readRaw(oldRecordLength * i + self.headerLength, oldRecordLength)
				if rec is None:
					errorAbort = True
					break
				oldField = _cString(rec[offset:offset + oldWidth])
				isNULL = isValueNULL(oldType, oldField)
				if width != oldWidth:
					if oldType in ('N', 'F', 'D') and rec[offset:offset+1] == b' ':
						#keep the rightmost digits of a right aligned number
						rec[offset:offset + width] = rec[offset + oldWidth - width:offset + oldWidth]
					del rec[offset + width:offset + oldWidth]
				if isNULL:
					rec[offset:offset + width] = newFill
				self._writeRaw(self.recordLength * i + self.headerLength, rec[:self.recordLength])
			if not errorAbort:
				self._writeEndOfFile()

		elif width > oldWidth:
			pad = b' ' * (width - oldWidth)
			for i in range(self.nRecords - 1, -1, -1):
				rec = self._readRaw(oldRecordLength * i + self.headerLength, oldRecordLength)
				if rec is None:
					errorAbort = True
					break
				oldField = rec[offset:offset + oldWidth]
				if isValueNULL(oldType, _cString(oldField)):
					newField = newFill
				elif oldType in ('N', 'F'):
					newField = pad + oldField
				else:
					newField = oldField + pad
				rec[offset:offset + oldWidth] = newField
				self._writeRaw(self.recordLength * i + self.headerLength, rec)
			if not errorAbort:
				self._writeEndOfFile()

		self.currentRecord = -1
		if errorAbort:
			self.hooks.error('Cannot read record {} while altering field {}.'.format(i, name))
			self.currentRecordModified = True
			self.updated = False
			return False
		self.currentRecordModified = False
		self.updated = True
		return True


	##############
	## Attributes

	def _readAttribute(self, iRecord, iField):
		'''Raw field text up to the first NUL, None when out of range'''
		if iRecord < 0 or iRecord >= self.nRecords:
			return None
		if iField < 0 or iField >= self.nFields:
			return None
		self.loadRecord(iRecord)
		offset = self.fieldOffset[iField]
		return _cString(self.record[offset:offset + self.fieldSize[iField]]).decode(ENCODING)

	def _trim(self, text):
		if text is not None and settings.trim_dbf_whitespace:
			return text.strip(' ')
		return text

	def readIntegerAttribute(self, iRecord, iField):
		text = self._readAttribute(iRecord, iField)
		if text is None:
			return 0
		return self.hooks.atoi(text)

	def readDoubleAttribute(self, iRecord, iField):
		text = self._readAttribute(iRecord, iField)
		if text is None:
			return 0.0
		return self.hooks.atof(text)

	def readStringAttribute(self, iRecord, iField):
		return self._trim(self._readAttribute(iRecord, iField))

	def readLogicalAttribute(self, iRecord, iField):
		return self._trim(self._readAttribute(iRecord, iField))

	def readDateAttribute(self, iRecord, iField):
		'''Return (year, month, day), zeros when the field is not a YYYYMMDD date'''
		text = self.readStringAttribute(iRecord, iField)
		if text is None or len(text) != 8 or not text.isdigit():
			return 0, 0, 0
		return int(text[:4]), int(text[4:6]), int(text[6:])

	def isAttributeNULL(self, iRecord, iField):
		text = self.readStringAttribute(iRecord, iField)
		if text is None:
			return True
		return isValueNULL(self.fieldType[iField], text)

	def _prepareWrite(self, iRecord):
		'''Load the target record, appending a blank one at nRecords'''
		if iRecord < 0 or iRecord > self.nRecords:
			return False
		if self.noHeader:
			self.writeHeader()
		if iRecord == self.nRecords:
			self.flushRecord()
			self.nRecords += 1
			self.record = bytearray(b' ' * self.recordLength)
			self.currentRecord = iRecord
		self.loadRecord(iRecord)
		return True

	def _truncated(self, iRecord, iField, value):
		message = 'Value {!r} truncated to the width {} of field {} in record {}'.format(value, self.fieldSize[iField], iField, iRecord)
		result = WriteResult(False, truncated=True, message=message)
		if settings.strict_writes:
			self._fail(FieldOverflowError, message)
		log.warning(message)
		return result

	def _writeAttribute(self, iRecord, iField, value):
		if iField < 0 or iField >= self.nFields:
			return WriteResult(False, message='Invalid field index {}'.format(iField))
		if not self._prepareWrite(iRecord):
			return WriteResult(False, message='Invalid record index {}'.format(iRecord))

		self.currentRecordModified = True
		self.updated = True
		offset = self.fieldOffset[iField]
		width = self.fieldSize[iField]
		chType = self.fieldType[iField]

		if value is None:
			self.record[offset:offset + width] = _toBytes(getNullCharacter(chType)) * width
			return WriteResult()

		if chType in ('D', 'N', 'F'):
			if isinstance(value, str):
				value = self.hooks.atof(value)
			text = b'%*.*f' % (min(width, MAX_NUMBER_WIDTH), self.fieldDecimals[iField], float(value))
			if len(text) > width:
				self.record[offset:offset + width] = text[:width]
				return self._truncated(iRecord, iField, value)
			self.record[offset:offset + len(text)] = text
			return WriteResult()

		if chType == 'L':
			if value is True or value is False:
				value = 'T' if value else 'F'
			if width >= 1 and value in ('T', 'F', b'T', b'F'):
				self.record[offset:offset + 1] = _toBytes(value)
				return WriteResult()
			message = 'Invalid logical value {!r}'.format(value)
			log.warning(message)
			return WriteResult(False, message=message)

		data = _toBytes(value)
		if len(data) > width:
			self.record[offset:offset + width] = data[:width]
			return self._truncated(iRecord, iField, value)
		self.record[offset:offset + width] = data.ljust(width, b' ')
		return WriteResult()

	def writeDoubleAttribute(self, iRecord, iField, value):
		return self._writeAttribute(iRecord, iField, float(value))

	def writeIntegerAttribute(self, iRecord, iField, value):
		return self._writeAttribute(iRecord, iField, float(int(value)))

	def writeStringAttribute(self, iRecord, iField, value):
		return self._writeAttribute(iRecord, iField, value)

	def writeNULLAttribute(self, iRecord, iField):
		return self._writeAttribute(iRecord, iField, None)

	def writeLogicalAttribute(self, iRecord, iField, value):
		return self._writeAttribute(iRecord, iField, value)

	def writeAttributeDirectly(self, iRecord, iField, value):
		'''Copy raw bytes in the field, truncated to its width, without formatting'''
		if iField < 0 or iField >= self.nFields:
			return WriteResult(False, message='Invalid field index {}'.format(iField))
		if not self._prepareWrite(iRecord):
			return WriteResult(False, message='Invalid record index {}'.format(iRecord))
		offset = self.fieldOffset[iField]
		width = self.fieldSize[iField]
		data = _toBytes(value)
		if len(data) > width:
			self.record[offset:offset + width] = data[:width]
		else:
			self.record[offset:offset + width] = data.ljust(width, b' ')
		self.currentRecordModified = True
		self.updated = True
		return WriteResult()

	def writeDateAttribute(self, iRecord, iField, date):
		'''date is a datetime.date or a (year, month, day) tuple'''
		if hasattr(date, 'year'):
			year, month, day = date.year, date.month, date.day
		else:
			year, month, day = date
		if not (0 <= year <= 9999 and 0 <= month <= 99 and 0 <= day <= 99):
			return WriteResult(False, message='Invalid date {}-{}-{}'.format(year, month, day))
		return self.writeAttributeDirectly(iRecord, iField, '%04d%02d%02d' % (year, month, day))

	def readTuple(self, iRecord):
		'''Raw bytes of a record, deletion flag included'''
		if iRecord < 0 or iRecord >= self.nRecords:
			return None
		self.loadRecord(iRecord)
		return bytes(self.record)

	def writeTuple(self, iRecord, rawTuple):
		if not self._prepareWrite(iRecord):
			return False
		self.record[:] = bytes(rawTuple[:self.recordLength]).ljust(self.recordLength, b' ')
		self.currentRecordModified = True
		self.updated = True
		return True

	def isRecordDeleted(self, iRecord):
		if iRecord < 0 or iRecord >= self.nRecords:
			return True
		self.loadRecord(iRecord)
		return self.record[0:1] != b' '

	def markRecordDeleted(self, iRecord, deleted=True):
		if iRecord < 0 or iRecord >= self.nRecords:
			return False
		self.loadRecord(iRecord)
		flag = b'*' if deleted else b' '
		if self.record[0:1] != flag:
			self.record[0:1] = flag
			self.currentRecordModified = True
			self.updated = True
		return True
