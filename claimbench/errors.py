from __future__ import annotations

class ClaimbenchError(Exception):
    """Base class for errors raised by claimbench itself."""

class DataError(ClaimbenchError, ValueError):
    pass

class TaskError(ClaimbenchError, ValueError):
    pass

class SchemaError(ClaimbenchError, ValueError):
    pass

class LearnerError(ClaimbenchError, KeyError):
    def __str__(self) -> str:
        # KeyError quotes its message
        return str(self.args[0]) if self.args else ""

class MeasureError(ClaimbenchError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""

class ResamplingError(ClaimbenchError, ValueError):
    pass

class ParamSetError(ClaimbenchError, ValueError):
    pass

class BenchmarkError(ClaimbenchError, ValueError):
    pass

class ConfigError(ClaimbenchError, ValueError):
    pass
