"""famsched - family activity reminders over Web Push."""
