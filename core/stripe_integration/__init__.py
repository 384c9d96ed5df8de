"""
Stripe Integration Package
==========================

Payments for client projects: deposits, final payments and invoices.

Structure
---------
- models.py    -> PaymentLog (local payment mirror), StripeEvent (webhook journal)
- services.py  -> façade over the stripe SDK (amounts in major units)
- views.py     -> API endpoints under /api/payments/
- webhooks.py  -> signature-verified event reconciler
- emails.py    -> payment confirmation / failure mails

Author: Agency Development Team
Version: 1.0.0
"""
