#     Copyright 2025. ThingsBoard
#
#     Licensed under the Apache License, Version 2.0 (the "License");
#     you may not use this file except in compliance with the License.
#     You may obtain a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#     Unless required by applicable law or agreed to in writing, software
#     distributed under the License is distributed on an "AS IS" BASIS,
#     WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#     See the License for the specific language governing permissions and
#     limitations under the License.

from threading import Condition, Lock


class ReadWriteLock:
    """
    Many readers or one writer. Writers are preferred: once a writer is waiting,
    new readers wait until it has finished.
    """

    def __init__(self):
        self.__condition = Condition(Lock())
        self.__readers = 0
        self.__writer_active = False
        self.__writers_waiting = 0

    def acquire_read(self):
        with self.__condition:
            while self.__writer_active or self.__writers_waiting:
                self.__condition.wait()
            self.__readers += 1

    def release_read(self):
        with self.__condition:
            self.__readers -= 1
            if self.__readers == 0:
                self.__condition.notify_all()

    def acquire_write(self):
        with self.__condition:
            self.__writers_waiting += 1
            try:
                while self.__writer_active or self.__readers:
                    self.__condition.wait()
            finally:
                self.__writers_waiting -= 1
            self.__writer_active = True

    def release_write(self):
        with self.__condition:
            self.__writer_active = False
            self.__condition.notify_all()

    @property
    def readers(self):
        with self.__condition:
            return self.__readers

    def read_locked(self):
        return _LockContext(self.acquire_read, self.release_read)

    def write_locked(self):
        return _LockContext(self.acquire_write, self.release_write)


class _LockContext:
    def __init__(self, acquire, release):
        self._acquire = acquire
        self._release = release

    def __enter__(self):
        self._acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._release()
