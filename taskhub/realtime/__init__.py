"""Realtime collaboration layer (Socket.IO).

Connection registry, presence, per-task rooms and the broadcast router live
here as plain in-process objects owned by one ``CollaborationHub``. The
Socket.IO server in ``taskhub.realtime.socketio`` is only a transport adapter
on top of the hub.
"""
