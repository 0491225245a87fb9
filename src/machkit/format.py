#
#  machkit | machkit
#  format.py
#
#  Contract shared by every container decoder.
#
#  This file is part of machkit. machkit is free software that
#  is made available under the MIT license. Consult the
#  file "LICENSE" that is distributed together with this file
#  for the exact licensing terms.
#

from abc import ABC, abstractmethod
from typing import List


class Format(ABC):
    """
    A container format we know how to decode into BinaryObjects.

    Decoders are stateless; both methods are classmethods so a Format can be used without instantiating it.
    """

    # Human readable name, used in CLI output
    name = ''

    @classmethod
    @abstractmethod
    def detect(cls, fp) -> bool:
        """
        Sniff the start of `fp` and report whether this decoder accepts it.

        Must never raise, and must leave the stream where it found it.

        :param fp: File opened with 'rb', or bytes-like
        :return:
        """

    @classmethod
    @abstractmethod
    def parse(cls, fp, **kwargs) -> List:
        """
        Decode every object `fp` contains.

        All-or-nothing: either a full list of BinaryObjects is returned or a MachODecodeException is raised.

        :param fp: File opened with 'rb', or bytes-like
        :return: List of BinaryObjects
        """
