"""ClawBack: credit card statement credit tracking and reset reminders.

Having this file ensures the 'clawback' directory is recognized as a regular
package during test discovery and when installed with pip.
"""

__version__ = "1.0.0"

__all__: list[str] = ["__version__"]
