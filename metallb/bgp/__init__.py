"""BGP advertisements and the session interfaces that carry them."""