from __future__ import annotations

from typing import Dict, List, Literal, Optional, Tuple

ALL = "all"

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# Source column labels
COL_BOOKING_NUMBER = "Booking Number"
COL_BOOKING_TYPE = "Booking Type"
COL_STATUS = "Booking Status"
COL_GRADE = "Booking Grade"
COL_ARRIVAL_DATE = "Arrival Date"
COL_ENTERED_DATE = "Entered Date"
COL_MARKET_SEGMENT = "Market Segment"
COL_PEAK_ROOM_NIGHTS = "Peak Room Nights"
COL_EVENT_REVENUE = "Total Event Revenue"
COL_BOOKING_SOURCE = "Booking Source"
COL_SALES_MANAGER = "Sales Manager"
COL_ROOM_NIGHT = "Room Night"
COL_TOTAL_REVENUE = "Total Booking Revenue"
COL_RESPONSE_TIME = "Lead Response Time(hrs)"
COL_AVG_RATE = "Current Average Rate"
COL_POST_AS_NAME = "Booking Post As Name"
COL_ORGANIZATION = "Organization Name"
COL_TERMINAL_REASON = "Terminal Status Reason"

FNB_FALLBACK_COLUMNS = ["Event Revenue (Food and Beverage)", "F&B Revenue"]
RENTAL_FALLBACK_COLUMNS = ["Venue Rental", "Meeting Room Rental"]

NA_TOKENS = {"", "nan"}

BookingCategory = Literal["Group Sales", "Local Catering"]
SegmentCategory = Literal["Corporate", "Social"]

GROUP_SALES: BookingCategory = "Group Sales"
LOCAL_CATERING: BookingCategory = "Local Catering"
BOOKING_CATEGORIES: Tuple[str, ...] = (GROUP_SALES, LOCAL_CATERING)

CORPORATE: SegmentCategory = "Corporate"
SOCIAL: SegmentCategory = "Social"
SEGMENT_CATEGORIES: Tuple[str, ...] = (CORPORATE, SOCIAL)
SOCIAL_SEGMENTS = {"smerf", "social"}

UNGRADED = "Ungraded"

CONVERTED_STATUSES: Tuple[str, ...] = ("Actual", "Definite")
LOST_STATUSES: Tuple[str, ...] = ("Lost", "Turn Down", "Cancelled")
PIPELINE_STATUS = "Tentative"

NO_REASON = "No Reason Given"

DEFAULT_ALLOWED_MANAGERS: Tuple[str, ...] = ("Whitney Britton", "Anna Lawless")

# Headline lost-reason grouping; dict order is match priority.
LOST_REASON_THEMES: Dict[str, List[str]] = {
    "Price": ["rate", "price", "expensive", "cost", "budget", "pricing", "cheaper", "afford", "fee", "charge", "costly"],
    "Availability": ["available", "availability", "sold out", "no rooms", "full", "capacity", "dates", "booked", "space"],
    "Location": [
        "location", "distance", "far", "travel", "drive", "competitor", "another property",
        "different hotel", "went elsewhere", "chose another", "alternate", "destination",
    ],
}

# Finer table used only for open-ended comment clustering.
COMMENT_THEMES: Dict[str, List[str]] = {
    "Rate Too High": ["rate", "price", "expensive", "cost", "budget", "pricing", "cheaper", "afford"],
    "Availability": ["available", "availability", "sold out", "no rooms", "full", "capacity", "dates"],
    "Competition": ["competitor", "another property", "different hotel", "went elsewhere", "chose another"],
    "Event Cancelled": ["cancel", "cancelled", "postpone", "postponed", "reschedule"],
    "No Response": ["no response", "unresponsive", "didn't respond", "never heard", "ghost"],
    "Location": ["location", "distance", "far", "travel", "drive"],
    "Group Size": ["size", "too small", "too large", "minimum", "maximum"],
    "Timing": ["timing", "too soon", "too late", "short notice", "lead time"],
}

# (key, min, max) inclusive; max None = open-ended
LEAD_TIME_BUCKETS: List[Tuple[str, int, Optional[int]]] = [
    ("0-30", 0, 30),
    ("31-60", 31, 60),
    ("61-90", 61, 90),
    ("91-120", 91, 120),
    ("121-180", 121, 180),
    ("181-270", 181, 270),
    ("271-365", 271, 365),
    ("366-545", 366, 545),
    ("546-730", 546, 730),
    ("731+", 731, None),
]

BLOCK_SIZE_BUCKETS: List[Tuple[str, int, Optional[int]]] = [
    ("1-5", 1, 5),
    ("6-10", 6, 10),
    ("11-20", 11, 20),
    ("21-35", 21, 35),
    ("36-50", 36, 50),
    ("51-75", 51, 75),
    ("76-100", 76, 100),
    ("101+", 101, None),
]

# (label, lower exclusive, upper inclusive) in hours
RESPONSE_TIME_BUCKETS: List[Tuple[str, Optional[float], Optional[float]]] = [
    ("0-2h", None, 2),
    ("2-4h", 2, 4),
    ("4-8h", 4, 8),
    ("8-24h", 8, 24),
    ("24-48h", 24, 48),
    ("48h+", 48, None),
]
