"""Pomoroom: shared Pomodoro rooms with a wall-clock synchronised timer."""
