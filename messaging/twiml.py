from __future__ import annotations

from twilio.twiml.voice_response import VoiceResponse

GOODBYE = "This message will not be repeated. Goodbye."


def voice_twiml(message: str, voice: str = "Polly.Joanna") -> str:
    # VoiceResponse escapes the message text; no manual XML escaping here.
    resp = VoiceResponse()
    resp.say(message, voice=voice)
    resp.pause(length=1)
    resp.say(GOODBYE, voice=voice)
    return str(resp)
