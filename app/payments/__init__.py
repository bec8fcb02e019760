"""
Payments app for Nkwa Pay mobile money.

This app handles:
- Provider webhook ingestion and application to orders
- Collection requests and payment status lookups
- The Security Gate guarding withdrawals
- Withdrawal batches of mobile-money service charges

Related apps:
    - orders: The ledger every payment is recorded against
    - restaurants: Tenant boundary and staff roles

Usage:
    from payments.services import SecurityGate, WithdrawalService

    decision = SecurityGate.verify(restaurant, code)
    withdrawal = WithdrawalService.authorize_and_settle(
        restaurant=restaurant,
        orders=orders,
        security_code=code,
        authorized_by=request.user,
        role=StaffRole.MANAGER,
        payment_method=WithdrawalMethod.MTN,
        withdrawal_date=date.today(),
    )
"""
