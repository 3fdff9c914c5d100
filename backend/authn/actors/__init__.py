"""Session and User actors and the runtime that serializes them.

- runtime.py: KeyedLock (per-id serialization), AlarmScheduler
- session_actor.py: SessionActor
- user_actor.py: UserActor
- system.py: ActorSystem registry and singleton accessors
"""
