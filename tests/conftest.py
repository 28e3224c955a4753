import os

import pytest

from shpcore import IOHooks


class RecordingHooks(IOHooks):
	'''Keep every diagnostic sent to the error sink'''

	def __init__(self):
		self.messages = []

	def error(self, message):
		self.messages.append(message)
		IOHooks.error(self, message)


class FailingReadHooks(RecordingHooks):
	'''Reads on files whose name ends with `suffix` fail after `allowed` calls'''

	def __init__(self, suffix, allowed=0):
		RecordingHooks.__init__(self)
		self.suffix = suffix
		self.allowed = allowed

	def fread(self, fp, size):
		if getattr(fp, 'name', '').endswith(self.suffix):
			if self.allowed <= 0:
				return b''
			self.allowed -= 1
		return IOHooks.fread(self, fp, size)


@pytest.fixture
def base(tmp_path):
	'''Base path, without extension, of a dataset in a temporary folder'''
	return str(tmp_path / 'data')

@pytest.fixture
def hooks():
	return RecordingHooks()


def readBytes(path):
	with open(path, 'rb') as f:
		return f.read()

def patchBytes(path, offset, data):
	with open(path, 'r+b') as f:
		f.seek(offset)
		f.write(data)

def fileSize(path):
	return os.path.getsize(path)
