"""
Clients app.

Holds the client record a subscription bills. The billing engine only reads
it, apart from the gateway customer mapping (external_customer_id) that the
provisioner writes the first time a client is billed.
"""
