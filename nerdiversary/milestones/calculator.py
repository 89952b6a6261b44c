"""Milestone calculator: the nerdy anniversaries of a birth instant.

Every milestone is a fixed offset from birth (planetary orbits, round counts of seconds,
Fibonacci days, ...) except the calendar ones (Earth birthdays, nerdy holidays) which keep
the birth wall-clock time in the configured timezone. Results are recomputed on demand and
never persisted.
"""

from __future__ import annotations

import datetime
import math
import re
import zoneinfo
from collections.abc import Iterator
from dataclasses import dataclass

from nerdiversary.notifications.contracts import MilestoneEvent
from nerdiversary.utils.time import ensure_utc

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR
MS_PER_WEEK = 7 * MS_PER_DAY
MS_PER_YEAR = 365.2425 * MS_PER_DAY
MS_PER_MONTH = 30.4375 * MS_PER_DAY

DEFAULT_YEARS_AHEAD = 120

PHI = (1 + math.sqrt(5)) / 2
SPEED_OF_LIGHT = 299_792_458

SUPERSCRIPTS = str.maketrans("0123456789", "⁰¹²³⁴⁵⁶⁷⁸⁹")


@dataclass(frozen=True)
class Planet:
  key: str
  name: str
  days: float
  icon: str


PLANETS: tuple[Planet, ...] = (
  Planet("mercury", "Mercury", 87.969, "☿️"),
  Planet("venus", "Venus", 224.701, "♀️"),
  Planet("mars", "Mars", 686.980, "♂️"),
  Planet("jupiter", "Jupiter", 4332.59, "♃"),
  Planet("saturn", "Saturn", 10759.22, "♄"),
  Planet("uranus", "Uranus", 30688.5, "⛢"),
  Planet("neptune", "Neptune", 60182, "♆"),
)

FIBONACCI: tuple[int, ...] = (
  1, 2, 3, 5, 8, 13, 21, 34, 55, 89, 144, 233, 377, 610, 987, 1597, 2584, 4181, 6765, 10946, 17711, 28657, 46368, 75025, 121393, 196418, 317811, 514229, 832040,
  1346269, 2178309, 3524578, 5702887, 9227465, 14930352, 24157817, 39088169, 63245986, 102334155, 165580141, 267914296, 433494437, 701408733, 1134903170, 1836311903, 2971215073,
)  # fmt: skip

LUCAS: tuple[int, ...] = (
  2, 1, 3, 4, 7, 11, 18, 29, 47, 76, 123, 199, 322, 521, 843, 1364, 2207, 3571, 5778, 9349, 15127, 24476, 39603, 64079, 103682, 167761, 271443, 439204, 710647,
  1149851, 1860498, 3010349, 4870847, 7881196, 12752043, 20633239, 33385282, 54018521, 87403803,
)  # fmt: skip

PERFECT_NUMBERS: tuple[int, ...] = (6, 28, 496, 8128)
TRIANGULAR: tuple[int, ...] = tuple(n * (n + 1) // 2 for n in range(1, 101))

PALINDROMES: tuple[int, ...] = (
  101, 111, 121, 131, 141, 151, 161, 171, 181, 191, 202, 212, 303, 313, 404, 414, 505, 515, 606, 616, 707, 717, 808, 818, 909, 919,
  1001, 1111, 1221, 1331, 1441, 1551, 1661, 1771, 1881, 1991, 2002, 2112, 2222, 2332, 2442, 2552, 2662, 2772, 2882, 2992, 3003, 3113, 3223, 3333,
  4004, 4114, 4224, 4334, 4444, 5005, 5115, 5225, 5335, 5445, 5555, 6006, 6116, 6226, 6336, 6446, 6556, 6666, 7007, 7117, 7227, 7337, 7447, 7557, 7667, 7777,
  8008, 8118, 8228, 8338, 8448, 8558, 8668, 8778, 8888, 9009, 9119, 9229, 9339, 9449, 9559, 9669, 9779, 9889, 9999,
  10001, 10101, 10201, 11011, 11111, 11211, 11311, 11411, 11511, 11611, 11711, 11811, 11911, 12021, 12121, 12221, 12321,
)  # fmt: skip

REPUNITS: tuple[int, ...] = (11, 111, 1111, 11111, 111111, 1111111, 11111111)
POWERS_OF_2: tuple[int, ...] = tuple(range(20, 33))
MINUTE_POWERS_OF_2: tuple[int, ...] = tuple(range(15, 26))

# (value, label, short) per unit; value is a count of that unit since birth.
SECOND_MILESTONES = (
  (1e6, "1 Million Seconds", "10⁶ seconds"),
  (1e7, "10 Million Seconds", "10⁷ seconds"),
  (5e7, "50 Million Seconds", "5×10⁷ seconds"),
  (1e8, "100 Million Seconds", "10⁸ seconds"),
  (2.5e8, "250 Million Seconds", "2.5×10⁸ seconds"),
  (5e8, "500 Million Seconds", "5×10⁸ seconds"),
  (7.5e8, "750 Million Seconds", "7.5×10⁸ seconds"),
  (1e9, "1 Billion Seconds", "10⁹ seconds"),
  (1111111111, "1,111,111,111 Seconds", "1.1B repunit seconds"),
  (1234567890, "1,234,567,890 Seconds", "sequential digits!"),
  (1.3e9, "1.3 Billion Seconds", "1.3×10⁹ seconds"),
  (1.4e9, "1.4 Billion Seconds", "1.4×10⁹ seconds"),
  (1.5e9, "1.5 Billion Seconds", "1.5×10⁹ seconds"),
  (2e9, "2 Billion Seconds", "2×10⁹ seconds"),
  (2.5e9, "2.5 Billion Seconds", "2.5×10⁹ seconds"),
  (3e9, "3 Billion Seconds", "3×10⁹ seconds"),
)

MINUTE_MILESTONES = (
  (1e5, "100,000 Minutes", "10⁵ minutes"),
  (5e5, "500,000 Minutes", "5×10⁵ minutes"),
  (1e6, "1 Million Minutes", "10⁶ minutes"),
  (2e6, "2 Million Minutes", "2×10⁶ minutes"),
  (3e6, "3 Million Minutes", "3×10⁶ minutes"),
  (5e6, "5 Million Minutes", "5×10⁶ minutes"),
  (7.5e6, "7.5 Million Minutes", "7.5×10⁶ minutes"),
  (1e7, "10 Million Minutes", "10⁷ minutes"),
  (1.5e7, "15 Million Minutes", "1.5×10⁷ minutes"),
  (2e7, "20 Million Minutes", "2×10⁷ minutes"),
  (21e6, "21 Million Minutes", "21×10⁶ minutes"),
  (22e6, "22 Million Minutes", "22×10⁶ minutes"),
  (22222222, "22,222,222 Minutes", "repdigit minutes"),
  (23e6, "23 Million Minutes", "23×10⁶ minutes"),
  (24e6, "24 Million Minutes", "24×10⁶ minutes"),
  (2.5e7, "25 Million Minutes", "2.5×10⁷ minutes"),
  (3e7, "30 Million Minutes", "3×10⁷ minutes"),
  (4e7, "40 Million Minutes", "4×10⁷ minutes"),
  (5e7, "50 Million Minutes", "5×10⁷ minutes"),
)

HOUR_MILESTONES = (
  (1e4, "10,000 Hours", "10⁴ hours"),
  (2.5e4, "25,000 Hours", "2.5×10⁴ hours"),
  (5e4, "50,000 Hours", "5×10⁴ hours"),
  (7.5e4, "75,000 Hours", "7.5×10⁴ hours"),
  (1e5, "100,000 Hours", "10⁵ hours"),
  (1.5e5, "150,000 Hours", "1.5×10⁵ hours"),
  (2e5, "200,000 Hours", "2×10⁵ hours"),
  (2.5e5, "250,000 Hours", "2.5×10⁵ hours"),
  (3e5, "300,000 Hours", "3×10⁵ hours"),
  (4e5, "400,000 Hours", "4×10⁵ hours"),
  (5e5, "500,000 Hours", "5×10⁵ hours"),
  (6e5, "600,000 Hours", "6×10⁵ hours"),
  (7.5e5, "750,000 Hours", "7.5×10⁵ hours"),
  (1e6, "1 Million Hours", "10⁶ hours"),
)

DAY_MILESTONES = (
  (1000, "1,000 Days", "10³ days"),
  (1500, "1,500 Days", "1.5×10³ days"),
  (2000, "2,000 Days", "2×10³ days"),
  (2500, "2,500 Days", "2.5×10³ days"),
  (3000, "3,000 Days", "3×10³ days"),
  (4000, "4,000 Days", "4×10³ days"),
  (5000, "5,000 Days", "5×10³ days"),
  (6000, "6,000 Days", "6×10³ days"),
  (7000, "7,000 Days", "7×10³ days"),
  (7500, "7,500 Days", "7.5×10³ days"),
  (8000, "8,000 Days", "8×10³ days"),
  (9000, "9,000 Days", "9×10³ days"),
  (10000, "10,000 Days", "10⁴ days"),
  (11111, "11,111 Days", "11,111 days"),
  (12345, "12,345 Days", "12,345 days"),
  (15000, "15,000 Days", "1.5×10⁴ days"),
  (16000, "16,000 Days", "1.6×10⁴ days"),
  (16384, "16,384 Days", "2¹⁴ days"),
  (17000, "17,000 Days", "1.7×10⁴ days"),
  (17500, "17,500 Days", "1.75×10⁴ days"),
  (18000, "18,000 Days", "1.8×10⁴ days"),
  (20000, "20,000 Days", "2×10⁴ days"),
  (22222, "22,222 Days", "22,222 days"),
  (25000, "25,000 Days", "2.5×10⁴ days"),
  (27500, "27,500 Days", "2.75×10⁴ days"),
  (30000, "30,000 Days", "3×10⁴ days"),
  (33333, "33,333 Days", "33,333 days"),
)

WEEK_MILESTONES = (
  (250, "250 Weeks", "250 weeks"),
  (500, "500 Weeks", "500 weeks"),
  (750, "750 Weeks", "750 weeks"),
  (1000, "1,000 Weeks", "10³ weeks"),
  (1250, "1,250 Weeks", "1,250 weeks"),
  (1500, "1,500 Weeks", "1,500 weeks"),
  (1750, "1,750 Weeks", "1,750 weeks"),
  (2000, "2,000 Weeks", "2×10³ weeks"),
  (2100, "2,100 Weeks", "2,100 weeks"),
  (2200, "2,200 Weeks", "2,200 weeks"),
  (2222, "2,222 Weeks", "repdigit weeks"),
  (2300, "2,300 Weeks", "2,300 weeks"),
  (2400, "2,400 Weeks", "2,400 weeks"),
  (2500, "2,500 Weeks", "2,500 weeks"),
  (3000, "3,000 Weeks", "3×10³ weeks"),
)

MONTH_MILESTONES = (
  (100, "100 Months", "100 months"),
  (200, "200 Months", "200 months"),
  (250, "250 Months", "250 months"),
  (300, "300 Months", "300 months"),
  (400, "400 Months", "400 months"),
  (444, "444 Months", "repdigit months"),
  (500, "500 Months", "500 months"),
  (555, "555 Months", "repdigit months"),
  (600, "600 Months", "600 months"),
  (666, "666 Months", "number of the beast months"),
  (750, "750 Months", "750 months"),
  (1000, "1,000 Months", "10³ months"),
)

# (unit key, unit ms, icon, description template, milestone table)
DECIMAL_UNITS = (
  ("seconds", MS_PER_SECOND, "🔢", "You've been alive for exactly {short}!", SECOND_MILESTONES),
  ("minutes", MS_PER_MINUTE, "⏱️", "You've experienced exactly {short}!", MINUTE_MILESTONES),
  ("hours", MS_PER_HOUR, "⏰", "You've lived for exactly {short}!", HOUR_MILESTONES),
  ("days", MS_PER_DAY, "📆", "You've experienced {short} on Earth!", DAY_MILESTONES),
  ("weeks", MS_PER_WEEK, "📅", "You've lived for {short}!", WEEK_MILESTONES),
  ("months", MS_PER_MONTH, "🗓️", "You've experienced {short} of life!", MONTH_MILESTONES),
)

HEX_SECONDS = (0x100000, 0x1000000, 0xFFFFFF, 0x10000000, 0xDEADBEEF)
HEX_LABELS = {0xFFFFFF: "0xFFFFFF", 0xDEADBEEF: "0xDEADBEEF"}


@dataclass(frozen=True)
class NumberBase:
  base: int
  name: str
  icon: str
  # unit key -> powers of ``base`` counted in that unit
  powers: dict[str, tuple[int, ...]]


NUMBER_BASES: tuple[NumberBase, ...] = (
  NumberBase(3, "ternary", "🔺", {"seconds": (15, 16, 17, 18, 19, 20), "minutes": (11, 12, 13, 14, 15), "hours": (8, 9, 10, 11, 12), "days": (6, 7, 8, 9)}),
  NumberBase(5, "quinary", "🖐️", {"seconds": (10, 11, 12, 13, 14), "minutes": (8, 9, 10, 11), "hours": (6, 7, 8, 9), "days": (5, 6, 7)}),
  NumberBase(6, "senary", "🎲", {"seconds": (9, 10, 11, 12, 13), "minutes": (7, 8, 9, 10), "hours": (5, 6, 7, 8), "days": (4, 5, 6)}),
  NumberBase(7, "septenary", "🌈", {"seconds": (8, 9, 10, 11, 12), "minutes": (6, 7, 8, 9), "hours": (5, 6, 7, 8), "days": (4, 5, 6)}),
  NumberBase(8, "octal", "🐙", {"seconds": (7, 8, 9, 10, 11), "minutes": (5, 6, 7, 8), "hours": (4, 5, 6, 7), "days": (3, 4, 5, 6)}),
  NumberBase(12, "dozenal", "🕛", {"seconds": (6, 7, 8, 9), "minutes": (5, 6, 7), "hours": (4, 5, 6), "days": (3, 4, 5)}),
  NumberBase(16, "hexadecimal", "🔷", {"seconds": (7, 8), "minutes": (5, 6, 7), "hours": (4, 5), "days": (3, 4)}),
  NumberBase(20, "vigesimal", "🏛️", {"seconds": (6, 7, 8), "minutes": (5, 6), "hours": (4, 5), "days": (3, 4)}),
  NumberBase(60, "Babylonian", "⏰", {"seconds": (4, 5), "minutes": (3, 4), "hours": (2, 3), "days": (2,)}),
)

UNIT_MS = {"seconds": MS_PER_SECOND, "minutes": MS_PER_MINUTE, "hours": MS_PER_HOUR, "days": MS_PER_DAY}

# (id key, symbol, value, text)
MATH_CONSTANTS = (
  ("pi", "π", math.pi, "π"),
  ("e", "e", math.e, "e"),
  ("phi", "φ", PHI, "golden ratio"),
  ("tau", "τ", math.tau, "τ (2π)"),
)
MATH_MULTIPLIERS = (7, 8, 9)

# (unit key, label, unit ms, low, high) inclusive count ranges for sequence milestones.
SEQUENCE_RANGES = (
  ("seconds", "Second", MS_PER_SECOND, 1e6, 3e9),
  ("minutes", "Minute", MS_PER_MINUTE, 1e5, 5e7),
  ("hours", "Hour", MS_PER_HOUR, 1e4, 1e6),
  ("days", "Day", MS_PER_DAY, 100, 40000),
)

NOTABLE_TRIANGULAR = frozenset({666, 5050, 1225, 2016, 3003, 5778, 8128})
NOTABLE_PALINDROMES = frozenset({1001, 1221, 1331, 1441, 2112, 2552, 3003, 5005, 5775, 7007, 7337, 9009, 10001, 10101, 11011, 11111, 12321, 12921})
PALINDROME_HOURS = (10001, 10101, 10201, 11011, 11111, 11211, 12021, 12121, 12221, 12321)

REPUNIT_RANGES = (
  ("days", MS_PER_DAY, 111, 11111),
  ("hours", MS_PER_HOUR, 1111, 111111),
  ("minutes", MS_PER_MINUTE, 111111, 11111111),
  ("seconds", MS_PER_SECOND, 11111111, 1111111111),
)

# (label, icon, unit ms, count, description)
POP_CULTURE_MILESTONES = (
  ("42 Million Seconds", "🌌", MS_PER_SECOND, 42e6, "The Answer to Life, the Universe, and Everything!"),
  ("1,337 Days", "🎮", MS_PER_DAY, 1337, "You are now officially 1337 (elite)!"),
)

# (name, icon, month, day, description, greeting)
NERDY_HOLIDAYS = (
  ("Pi Day", "🥧", 3, 14, "March 14 (3.14)", "Pi Day"),
  ("May the 4th", "⚔️", 5, 4, "Star Wars Day", "Star Wars Day"),
  ("Tau Day", "🌀", 6, 28, "June 28 (τ ≈ 6.28)", "Tau Day"),
)

PRIME_AGES = frozenset({2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53, 59, 61, 67, 71, 73, 79, 83, 89, 97, 101, 103, 107, 109, 113})
SQUARE_AGES = {4: "2²", 9: "3²", 16: "4²", 25: "5²", 36: "6²", 49: "7²", 64: "8²", 81: "9²", 100: "10²"}
POWER_OF_2_AGES = {2: "2¹", 4: "2²", 8: "2³", 16: "2⁴", 32: "2⁵", 64: "2⁶"}
CUBE_AGES = {8: "2³", 27: "3³", 64: "4³"}
HEX_ROUND_AGES = {16: "0x10", 32: "0x20", 48: "0x30", 64: "0x40", 80: "0x50", 96: "0x60", 112: "0x70"}


def ordinal(n: int) -> str:
  """Return ``1st``, ``2nd``, ``11th``, ``23rd`` and so on."""
  if 10 <= n % 100 <= 20:
    suffix = "th"
  else:
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
  return f"{n}{suffix}"


def superscript(n: int) -> str:
  return str(n).translate(SUPERSCRIPTS)


def birthday_labels(age: int) -> list[str]:
  labels: list[str] = []
  if age == 42:
    labels.append("The Answer!")
  if age in PRIME_AGES:
    labels.append("Prime")
  if age in SQUARE_AGES:
    labels.append(f"Perfect Square ({SQUARE_AGES[age]})")
  if age in POWER_OF_2_AGES:
    labels.append(f"Power of 2 ({POWER_OF_2_AGES[age]})")
  if age in CUBE_AGES:
    labels.append(f"Perfect Cube ({CUBE_AGES[age]})")
  if age in HEX_ROUND_AGES:
    labels.append(f"Hex Round ({HEX_ROUND_AGES[age]})")
  return labels


def _is_notable_palindrome(value: int) -> bool:
  digits = str(value)
  return value % 1111 == 0 or len(set(digits)) == 1 or value in NOTABLE_PALINDROMES


def _offset(birth: datetime.datetime, milliseconds: float) -> datetime.datetime:
  return birth + datetime.timedelta(milliseconds=milliseconds)


def _wall_clock(local_birth: datetime.datetime, year: int, month: int, day: int) -> datetime.datetime:
  """Same local time on another calendar day; Feb 29 rolls over to Mar 1 in common years."""
  try:
    moved = local_birth.replace(year=year, month=month, day=day)
  except ValueError:
    moved = local_birth.replace(year=year, month=month, day=1) + datetime.timedelta(days=day - 1)
  return moved.astimezone(datetime.UTC)


def _planetary(birth: datetime.datetime, until: datetime.datetime) -> Iterator[MilestoneEvent]:
  for planet in PLANETS:
    for orbit in range(1, 201):
      at = _offset(birth, orbit * planet.days * MS_PER_DAY)
      if at > until:
        break
      plural = "s" if orbit > 1 else ""
      yield MilestoneEvent(id=f"{planet.key}-{orbit}", title=f"{planet.name} Year {orbit}", description=f"You've completed {orbit} orbit{plural} around the Sun as measured from {planet.name}!", icon=planet.icon, category="planetary", at=at)


def _decimal(birth: datetime.datetime) -> Iterator[MilestoneEvent]:
  for unit, unit_ms, icon, template, table in DECIMAL_UNITS:
    for value, label, short in table:
      description = template.format(short=short)
      if unit == "hours" and value == 1e4:
        description += " You've mastered life according to the 10,000-hour rule!"
      yield MilestoneEvent(id=f"{unit}-{int(value)}", title=label, description=description, icon=icon, category="decimal", at=_offset(birth, value * unit_ms))


def _binary(birth: datetime.datetime) -> Iterator[MilestoneEvent]:
  for power in POWERS_OF_2:
    value = 2**power
    yield MilestoneEvent(id=f"binary-seconds-{power}", title=f"2^{power} Seconds", description=f"You've lived for exactly 2{superscript(power)} = {value:,} seconds!", icon="💻", category="binary", at=_offset(birth, value * MS_PER_SECOND))

  for power in MINUTE_POWERS_OF_2:
    value = 2**power
    yield MilestoneEvent(id=f"binary-minutes-{power}", title=f"2^{power} Minutes", description=f"You've lived for exactly 2{superscript(power)} = {value:,} minutes!", icon="🔟", category="binary", at=_offset(birth, value * MS_PER_MINUTE))

  for value in HEX_SECONDS:
    hex_label = HEX_LABELS.get(value, hex(value))
    yield MilestoneEvent(id=f"hex-{hex_label}", title=f"{hex_label} Seconds", description=f"You've lived for {hex_label} ({value:,}) seconds!", icon="🔢", category="binary", at=_offset(birth, value * MS_PER_SECOND))

  for number_base in NUMBER_BASES:
    for unit, powers in number_base.powers.items():
      for power in powers:
        value = number_base.base**power
        yield MilestoneEvent(
          id=f"base{number_base.base}-{power}-{unit}",
          title=f"{number_base.base}^{power} {unit.capitalize()}",
          description=f"You've lived for {number_base.base}{superscript(power)} = {value:,} {unit} ({number_base.name})!",
          icon=number_base.icon,
          category="binary",
          at=_offset(birth, value * UNIT_MS[unit]),
        )

  for unit, unit_ms, low, high in REPUNIT_RANGES:
    label = unit[:-1].capitalize()
    for rep in REPUNITS:
      if low <= rep <= high:
        yield MilestoneEvent(id=f"repunit-{unit}-{rep}", title=f"Repunit {label} {rep:,}", description=f"{label} {rep:,} is a repunit (all 1s)!", icon="1️⃣", category="binary", at=_offset(birth, rep * unit_ms))


def _mathematical(birth: datetime.datetime) -> Iterator[MilestoneEvent]:
  for key, symbol, value, text in MATH_CONSTANTS:
    for exponent in MATH_MULTIPLIERS:
      # τ × 10⁹ seconds is past any lifetime.
      if key == "tau" and exponent == 9:
        continue
      mult = 10**exponent
      label = f"{symbol} × 10{superscript(exponent)} Seconds"
      yield MilestoneEvent(id=f"{key}-{mult}", title=label, description=f"You've lived for {text} × 10{superscript(exponent)} ≈ {math.floor(value * mult):,} seconds!", icon=symbol, category="mathematical", at=_offset(birth, value * mult * MS_PER_SECOND))

  for perfect in PERFECT_NUMBERS:
    yield MilestoneEvent(id=f"perfect-days-{perfect}", title=f"Perfect Day {perfect}", description=f"Day {perfect} is a perfect number! ({perfect} = sum of its divisors)", icon="💎", category="mathematical", at=_offset(birth, perfect * MS_PER_DAY))
  for perfect in (496, 8128):
    yield MilestoneEvent(id=f"perfect-hours-{perfect}", title=f"Perfect Hour {perfect:,}", description=f"Hour {perfect:,} is a perfect number!", icon="💎", category="mathematical", at=_offset(birth, perfect * MS_PER_HOUR))

  for n, tri in enumerate(TRIANGULAR, start=1):
    if (n % 10 == 0 or tri in NOTABLE_TRIANGULAR) and 100 <= tri <= 15000:
      yield MilestoneEvent(id=f"triangular-days-{tri}", title=f"Triangular Day {tri:,}", description=f"Day {tri:,} is triangular! (1+2+3+...+{n} = {tri})", icon="🔺", category="mathematical", at=_offset(birth, tri * MS_PER_DAY))

  for pal in PALINDROMES:
    if 1000 <= pal <= 15000 and _is_notable_palindrome(pal):
      yield MilestoneEvent(id=f"palindrome-days-{pal}", title=f"Palindrome Day {pal:,}", description=f"Day {pal} is a palindrome, it reads the same forwards and backwards!", icon="🪞", category="mathematical", at=_offset(birth, pal * MS_PER_DAY))
  for pal in PALINDROME_HOURS:
    yield MilestoneEvent(id=f"palindrome-hours-{pal}", title=f"Palindrome Hour {pal:,}", description=f"Hour {pal:,} is a palindrome!", icon="🪞", category="mathematical", at=_offset(birth, pal * MS_PER_HOUR))

  yield MilestoneEvent(id="speed-of-light-seconds", title="Speed of Light Seconds", description=f"You've lived for {SPEED_OF_LIGHT:,} seconds, the speed of light in m/s!", icon="💡", category="mathematical", at=_offset(birth, SPEED_OF_LIGHT * MS_PER_SECOND))

  e_pi = math.e**math.pi
  for mult, label in ((10**6, "Million"), (10**7, "10 Million"), (10**8, "100 Million")):
    yield MilestoneEvent(id=f"e-pi-{mult}", title=f"e^π × {label} Seconds", description=f"You've lived for e^π × {mult:,} ≈ {math.floor(e_pi * mult):,} seconds!", icon="🧮", category="mathematical", at=_offset(birth, e_pi * mult * MS_PER_SECOND))


def _sequences(birth: datetime.datetime) -> Iterator[MilestoneEvent]:
  for unit, label, unit_ms, low, high in SEQUENCE_RANGES:
    for fib in FIBONACCI:
      if low <= fib <= high:
        yield MilestoneEvent(id=f"fib-{unit}-{fib}", title=f"Fibonacci {label} {fib:,}", description=f"{label} {fib:,} is a Fibonacci number!", icon="🌀", category="fibonacci", at=_offset(birth, fib * unit_ms))
    for luc in LUCAS:
      if low <= luc <= high:
        yield MilestoneEvent(id=f"lucas-{unit}-{luc}", title=f"Lucas {label} {luc:,}", description=f"{label} {luc:,} is a Lucas number!", icon="🔷", category="fibonacci", at=_offset(birth, luc * unit_ms))


def _pop_culture(birth: datetime.datetime, local_birth: datetime.datetime, until: datetime.datetime) -> Iterator[MilestoneEvent]:
  for label, icon, unit_ms, count, description in POP_CULTURE_MILESTONES:
    yield MilestoneEvent(id="pop-" + re.sub(r"[\s,]", "-", label), title=label, description=description, icon=icon, category="pop-culture", at=_offset(birth, count * unit_ms))

  # Holidays are counted from the first anniversary year, like birthdays.
  for name, icon, month, day, description, greeting in NERDY_HOLIDAYS:
    key = name.lower().replace(" ", "-")
    for year in range(local_birth.year + 1, local_birth.year + DEFAULT_YEARS_AHEAD + 1):
      at = _wall_clock(local_birth, year, month, day)
      if at > until:
        break
      yield MilestoneEvent(id=f"{key}-{year}", title=f"{name} {year}", description=f"{greeting}! ({description})", icon=icon, category="pop-culture", at=at)


def _earth_birthdays(birth: datetime.datetime, local_birth: datetime.datetime, until: datetime.datetime) -> Iterator[MilestoneEvent]:
  for age in range(1, DEFAULT_YEARS_AHEAD + 1):
    at = _wall_clock(local_birth, local_birth.year + age, local_birth.month, local_birth.day)
    if at > until:
      break
    labels = birthday_labels(age)
    suffix = f" ({', '.join(labels)})" if labels else ""
    yield MilestoneEvent(id=f"earth-birthday-{age}", title=f"{ordinal(age)} Birthday", description=f"Happy {ordinal(age)} birthday on Earth!{suffix}", icon="🎂", category="planetary", at=at)


def calculate_milestones(birth: datetime.datetime, *, timezone_name: str = "UTC", years_ahead: int = DEFAULT_YEARS_AHEAD, start: datetime.datetime | None = None, end: datetime.datetime | None = None) -> list[MilestoneEvent]:
  """Return every milestone within ``years_ahead`` of birth, optionally clipped to ``[start, end]``, sorted by instant."""
  birth = ensure_utc(birth)
  until = _offset(birth, years_ahead * MS_PER_YEAR)
  if end is not None and ensure_utc(end) < until:
    until = ensure_utc(end)

  local_birth = birth.astimezone(zoneinfo.ZoneInfo(timezone_name))
  lower = ensure_utc(start) if start is not None else None

  candidates = [
    *_planetary(birth, until),
    *_decimal(birth),
    *_binary(birth),
    *_mathematical(birth),
    *_sequences(birth),
    *_pop_culture(birth, local_birth, until),
    *_earth_birthdays(birth, local_birth, until),
  ]
  events = [event for event in candidates if birth < event.at <= until and (lower is None or event.at >= lower)]
  events.sort(key=lambda event: (event.at, event.id))
  return events


class MilestoneCalculator:
  """Default milestone source for the scanner."""

  def __init__(self, *, timezone_name: str = "UTC", years_ahead: int = DEFAULT_YEARS_AHEAD) -> None:
    self._timezone_name = timezone_name
    self._years_ahead = years_ahead

  def __call__(self, birth: datetime.datetime, as_of: datetime.datetime, horizon: datetime.timedelta) -> list[MilestoneEvent]:
    return due_milestones(birth, as_of, horizon, timezone_name=self._timezone_name, years_ahead=self._years_ahead)


def due_milestones(birth: datetime.datetime, as_of: datetime.datetime, horizon: datetime.timedelta, *, timezone_name: str = "UTC", years_ahead: int = DEFAULT_YEARS_AHEAD) -> list[MilestoneEvent]:
  """Milestones whose instant lies in ``[as_of, as_of + horizon]``."""
  as_of = ensure_utc(as_of)
  return calculate_milestones(birth, timezone_name=timezone_name, years_ahead=years_ahead, start=as_of, end=as_of + horizon)
