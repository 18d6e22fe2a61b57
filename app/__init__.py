"""Campus Attendance API Application."""
