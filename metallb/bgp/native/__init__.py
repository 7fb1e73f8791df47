"""BGP sessions spoken directly over TCP, with their messages, backoff and statistics."""