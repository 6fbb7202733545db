"""Typed failures raised by the date engine.

Every error carries enough structured detail (the offending value and the
valid range where relevant) for a caller to build a user-facing message
without re-deriving anything. ``to_dict()`` is what the HTTP layer returns.
"""


class DateEngineError(ValueError):
    code = 'date_engine_error'

    def to_dict(self) -> dict:
        return {'error': self.code, 'message': str(self)}


class InvalidDateFormat(DateEngineError):
    """No parsing strategy could turn the input into a date."""
    code = 'invalid_date_format'

    def __init__(self, text: str, reason: str | None = None):
        self.text = text
        self.reason = reason
        msg = (
            f"I couldn't understand the date {text!r}. Please provide the date in a clear "
            'format like "MM/DD/YYYY" (e.g., 06/25/2025) or a natural description like '
            '"June 25, 2025", "next Tuesday", "two weeks from today", or "in 3 months".'
        )
        if reason:
            msg = f'{msg} ({reason})'
        super().__init__(msg)

    def to_dict(self) -> dict:
        out = super().to_dict()
        out['input'] = self.text
        if self.reason:
            out['reason'] = self.reason
        return out


class DateOutOfRange(DateEngineError):
    """The input parsed, but its year is outside the policy for its purpose."""
    code = 'date_out_of_range'

    def __init__(self, year: int, min_year: int, max_year: int, purpose: str):
        self.year = year
        self.min_year = min_year
        self.max_year = max_year
        self.purpose = purpose
        super().__init__(
            f'The year {year} seems invalid. Please use a year between {min_year} and {max_year}.'
        )

    def to_dict(self) -> dict:
        out = super().to_dict()
        out.update({'year': self.year, 'min_year': self.min_year, 'max_year': self.max_year, 'purpose': self.purpose})
        return out


class InvalidWindow(DateEngineError):
    code = 'invalid_window'

    def __init__(self, start, end):
        self.start = start
        self.end = end
        super().__init__(f'invalid window: start {start.isoformat()} is after end {end.isoformat()}')

    def to_dict(self) -> dict:
        out = super().to_dict()
        out.update({'start': self.start.isoformat(), 'end': self.end.isoformat()})
        return out


class InvalidAnchor(DateEngineError):
    """A malformed anchor reached the projector (contract violation)."""
    code = 'invalid_anchor'
