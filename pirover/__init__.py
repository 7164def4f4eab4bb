"""
Pi Rover operator console.

Streams the rover's camera and turns joystick, keyboard and toggle input into
motor and light commands for the rover.
"""

__version__ = "0.2.0"
