# onnxscore/utils/errors.py
class OnnxScoringError(RuntimeError):
    """
    Base class for every error raised by onnxscore.
    """


class ConfigurationError(OnnxScoringError):
    """
    Missing / blank model path or column names, model file not found,
    model without inputs or outputs. Fatal at construction, never retried.
    """


class SchemaMismatch(OnnxScoringError):
    """
    Bound column absent, wrong vector kind, wrong concrete vector length,
    or an element type that cannot be bound to the model input.
    """

    def __init__(
        self,
        column: str,
        reason: str,
        expected: object | None = None,
        actual: object | None = None,
    ):
        self.column = column
        self.reason = reason
        self.expected = expected
        self.actual = actual

        msg = f"Schema mismatch for column '{column}': {reason}"
        if expected is not None or actual is not None:
            msg += f" (expected={expected}, actual={actual})"
        super().__init__(msg)


class DecodeError(OnnxScoringError):
    """
    Corrupt or version-incompatible persisted container, or model bytes
    the inference engine cannot parse.
    """


class InferenceError(OnnxScoringError):
    """
    The inference engine rejected or failed to execute a tensor set.
    Not retried: inference is deterministic.
    """


class UnsupportedType(OnnxScoringError):
    """
    Element type without a mapping in the element-type registry.
    """
