import time

import pyaudio

from alarms.sounds import AlarmSound, CueKind, ring_tones, tones_for
from audio_io import render_tones


def main():
    pa = pyaudio.PyAudio()
    rate = 24000
    stream = pa.open(format=pyaudio.paFloat32, channels=1, rate=rate, output=True)
    for sound in AlarmSound:
        if sound is AlarmSound.NONE:
            continue
        print(f"{sound.value}: ring")
        stream.write(render_tones(ring_tones(sound), rate).tobytes())
        time.sleep(0.3)
        for seconds_left in (3, 2, 1):
            print(f"{sound.value}: warning {seconds_left}")
            stream.write(render_tones(tones_for(CueKind.WARNING, sound, seconds_left), rate).tobytes())
            time.sleep(0.5)
        print(f"{sound.value}: time's up")
        stream.write(render_tones(tones_for(CueKind.TERMINAL, sound), rate).tobytes())
        time.sleep(0.6)
    stream.stop_stream()
    stream.close()
    pa.terminate()
    time.sleep(0.1)


if __name__ == "__main__":
    main()
