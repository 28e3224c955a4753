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

from .settings import settings
logging.basicConfig(level=logging.getLevelName(settings.log_level))

from .errors import ShapelibError, ShpIOError, ShpCorruptError, ShpSchemaError, ShpAllocationError, ShpUsageError, FieldOverflowError

from .utils import BBOX

from .hooks import IOHooks, defaultHooks

from .shape import Shape, BorrowedShape, createObject, createSimpleObject, computeExtents, typeName, partTypeName, \
	SHPT_NULL, SHPT_POINT, SHPT_ARC, SHPT_POLYGON, SHPT_MULTIPOINT, \
	SHPT_POINTZ, SHPT_ARCZ, SHPT_POLYGONZ, SHPT_MULTIPOINTZ, \
	SHPT_POINTM, SHPT_ARCM, SHPT_POLYGONM, SHPT_MULTIPOINTM, SHPT_MULTIPATCH, \
	SHPP_TRISTRIP, SHPP_TRIFAN, SHPP_OUTERRING, SHPP_INNERRING, SHPP_FIRSTRING, SHPP_RING

from .shp import GeometryStore

from .dbf import AttributeStore, WriteResult, isValueNULL, getNullCharacter, \
	FTString, FTInteger, FTDouble, FTLogical, FTDate, FTInvalid
