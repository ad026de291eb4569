# SPDX-License-Identifier: LGPL-3.0-or-later
# SASLprep profile of stringprep (RFC 4013)

import stringprep
import unicodedata


__all__ = ['saslprep']


# (table check, description) pairs from RFC 4013, Section 2.3
_PROHIBITED_TABLES = (
    (stringprep.in_table_c12, 'C.1.2: Non-ASCII space'),
    (stringprep.in_table_c21, 'C.2.1: ASCII control'),
    (stringprep.in_table_c22, 'C.2.2: Non-ASCII control'),
    (stringprep.in_table_c3, 'C.3: Private use'),
    (stringprep.in_table_c4, 'C.4: Non-character'),
    (stringprep.in_table_c5, 'C.5: Surrogate'),
    (stringprep.in_table_c6, 'C.6: Inappropriate for plain text'),
    (stringprep.in_table_c7, 'C.7: Inappropriate for canonical representation'),
    (stringprep.in_table_c8, 'C.8: Change display properties'),
    (stringprep.in_table_c9, 'C.9: Tagging character'),
)


def _map_character(c: str) -> str:
    # RFC 4013, Section 2.1: non-ASCII spaces map to SPACE, table B.1 maps to nothing
    if stringprep.in_table_c12(c):
        return ' '

    if stringprep.in_table_b1(c):
        return ''

    return c


def saslprep(input_str: str, *, allow_unassigned: bool = False) -> str:
    """
    Implements the SASLprep profile of stringprep (RFC 4013).

    This profile prepares Unicode user names and passwords for comparison
    or use in cryptographic functions. Case is preserved.

    By default the string is treated as a "stored string" (RFC 3454,
    Section 7), so unassigned code points are rejected. Pass
    `allow_unassigned=True` to treat it as a query string instead.

    Args:
        input_str: The string to prepare
        allow_unassigned: Accept code points unassigned in Unicode 3.2

    Returns:
        The prepared string

    Raises:
        TypeError: If input_str is not a string
        ValueError: If the string contains prohibited or (for stored strings)
            unassigned characters, or violates the bidi rules

    References:
        RFC 4013 - SASLprep: Stringprep Profile for User Names and Passwords
        RFC 3454 - Preparation of Internationalized Strings ("stringprep")
    """
    if not isinstance(input_str, str):
        raise TypeError('input_str must be a string')

    if not input_str:
        return input_str

    mapped = ''.join(_map_character(c) for c in input_str)

    # RFC 4013, Section 2.2: Normalization form KC
    normalized = unicodedata.normalize('NFKC', mapped)
    if not normalized:
        return normalized

    for i, c in enumerate(normalized):
        for in_table, description in _PROHIBITED_TABLES:
            if in_table(c):
                raise ValueError(f'Character at position {i} is prohibited (RFC 3454, {description})')

        # RFC 4013, Section 2.5: Unassigned code points
        if not allow_unassigned and stringprep.in_table_a1(c):
            raise ValueError(f'Character at position {i} is unassigned (RFC 3454, A.1)')

    # RFC 4013, Section 2.4: Bidirectional characters (RFC 3454, Section 6)
    has_RandALCat = any(stringprep.in_table_d1(c) for c in normalized)
    if has_RandALCat:
        if any(stringprep.in_table_d2(c) for c in normalized):
            raise ValueError('String contains both RandALCat and LCat characters (RFC 3454, Section 6)')

        if not stringprep.in_table_d1(normalized[0]) or not stringprep.in_table_d1(normalized[-1]):
            raise ValueError(
                'First and last characters must be RandALCat when string contains RandALCat '
                '(RFC 3454, Section 6)'
            )

    return normalized
