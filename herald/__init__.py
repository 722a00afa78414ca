"""
Herald - voice and text command assistant package

Herald turns natural-language instructions ("email rohit at gmail.com that I'm
running late", "schedule a meeting with john@x.com tomorrow at 3pm", "call the
dentist and book a cleaning") into structured intents and dispatches them to
Gmail, Google Calendar, and Twilio/Exotel telephony.

Core modules:
- datetime_utils: Heuristic date/time resolution for loosely formatted phrases
- utils: Environment parsing helpers shared by configuration
- assistant: Intent parsing, command routing, and the action agents
"""

__version__ = "0.4.2"
