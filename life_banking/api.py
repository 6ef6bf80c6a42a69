"""
FastAPI REST API Module

HTTP surface for the banking engine: accounts, money movement, loans,
collateral, policy and the yearly simulation step. Amounts and rates travel
as decimal strings.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from fastapi import FastAPI, HTTPException, Depends, Query, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import uvicorn

from .accounts import Account
from .config import get_config
from .exceptions import AccountNotFound
from .ledger import LedgerEntry
from .logging_config import get_logger, setup_logging
from .system import BankingSystem

logger = get_logger("life_banking.api")


# Pydantic models for API requests
class OpenAccountRequest(BaseModel):
    category: str = Field(..., description="Account category (checking, savings, mortgage, ...)")
    amount: str = Field("0", description="Initial deposit or principal as a decimal string")
    year: int
    rate: Optional[str] = None
    term_years: Optional[int] = None


class CloseAccountRequest(BaseModel):
    year: int


class DepositRequest(BaseModel):
    account_id: str
    amount: str
    year: int
    description: str = "Deposit"


class WithdrawRequest(BaseModel):
    account_id: str
    amount: str
    year: int
    description: str = "Withdrawal"


class TransferRequest(BaseModel):
    from_account_id: str
    to_account_id: str
    amount: str
    year: int


class CreateLoanRequest(BaseModel):
    category: str
    principal: str
    year: int
    term_years: Optional[int] = None
    collateral_id: Optional[str] = None
    variable_rate: bool = False
    disburse_to: Optional[str] = None
    rate: Optional[str] = None


class LoanPaymentRequest(BaseModel):
    amount: str
    year: int
    source_account_id: Optional[str] = None


class CollateralRequest(BaseModel):
    collateral_type: str = Field(..., description="real_estate, vehicle, investment, savings or other")
    value: str
    year: int
    description: str = ""


class AdvanceYearRequest(BaseModel):
    year: Optional[int] = None


class PolicyUpdateRequest(BaseModel):
    minimum_reserve_ratio: Optional[str] = None
    deposit_insurance_limit: Optional[str] = None
    max_loan_to_value_ratio: Optional[str] = None
    base_interest_rate: Optional[str] = None
    inflation_rate: Optional[str] = None


_banking_system: Optional[BankingSystem] = None


def get_banking_system() -> BankingSystem:
    """Dependency returning the process-wide banking session"""
    global _banking_system
    if _banking_system is None:
        _banking_system = BankingSystem()
    return _banking_system


def _domain_error(error: ValueError) -> HTTPException:
    logger.warning(f"Request rejected: {error}")
    if isinstance(error, AccountNotFound):
        return HTTPException(status_code=404, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


def _entry_response(entry: LedgerEntry) -> Dict[str, Any]:
    return entry.to_dict()


def _account_response(account: Account, include_ledger: bool = False) -> Dict[str, Any]:
    result = {
        "account_id": account.id,
        "category": account.category.value,
        "balance": str(account.balance),
        "signed_balance": str(account.signed_balance),
        "interest_rate": str(account.interest_rate),
        "origination_year": account.origination_year,
        "is_open": account.is_open,
        "term_years": account.term_years,
        "payments_made": account.payments_made,
        "variable_rate": account.variable_rate,
        "collateral_id": account.collateral_id,
        "credit_limit": str(account.credit_limit) if account.credit_limit is not None else None,
        "available_credit": str(account.available_credit),
        "closed_year": account.closed_year,
    }
    if include_ledger:
        result["ledger"] = [_entry_response(entry) for entry in account.ledger]
    return result


# Create FastAPI app
app = FastAPI(
    title="Life Banking Engine API",
    description="Banking and monetary simulation for a life-simulation game",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# Accounts

@app.post("/accounts", status_code=status.HTTP_201_CREATED)
async def open_account(
    request: OpenAccountRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Open a deposit account (loan categories are originated as loans)"""
    try:
        account = system.open_account(
            request.category, request.amount, request.year,
            rate=request.rate, term_years=request.term_years
        )
    except ValueError as e:
        raise _domain_error(e)
    return _account_response(account)


@app.get("/accounts")
async def list_accounts(
    category: Optional[str] = None,
    include_closed: bool = True,
    system: BankingSystem = Depends(get_banking_system)
):
    """List accounts in creation order"""
    try:
        accounts = system.get_accounts(category, include_closed)
    except ValueError as e:
        raise _domain_error(e)
    return {"accounts": [_account_response(account) for account in accounts]}


@app.get("/accounts/{account_id}")
async def get_account(
    account_id: str,
    include_ledger: bool = False,
    system: BankingSystem = Depends(get_banking_system)
):
    """Get one account, optionally with its ledger"""
    try:
        account = system.get_account(account_id)
    except ValueError as e:
        raise _domain_error(e)
    return _account_response(account, include_ledger)


@app.post("/accounts/{account_id}/close")
async def close_account(
    account_id: str,
    request: CloseAccountRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Close an account and pay out any remaining balance"""
    try:
        payout = system.close_account(account_id, request.year)
    except ValueError as e:
        raise _domain_error(e)
    return {"account_id": account_id, "payout": str(payout)}


# Transactions

@app.post("/transactions/deposit")
async def deposit(
    request: DepositRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Make a deposit"""
    try:
        entry = system.deposit(request.account_id, request.amount, request.year, request.description)
    except ValueError as e:
        raise _domain_error(e)
    return _entry_response(entry)


@app.post("/transactions/withdraw")
async def withdraw(
    request: WithdrawRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Make a withdrawal"""
    try:
        entry = system.withdraw(request.account_id, request.amount, request.year, request.description)
    except ValueError as e:
        raise _domain_error(e)
    return _entry_response(entry)


@app.post("/transactions/transfer")
async def transfer(
    request: TransferRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Transfer between two accounts"""
    try:
        debit, credit = system.transfer(
            request.from_account_id, request.to_account_id, request.amount, request.year
        )
    except ValueError as e:
        raise _domain_error(e)
    return {"debit": _entry_response(debit), "credit": _entry_response(credit)}


# Loans and collateral

@app.post("/loans", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Originate a loan or credit line"""
    try:
        loan = system.originate_loan(
            request.category, request.principal, request.year,
            term_years=request.term_years,
            collateral_id=request.collateral_id,
            variable_rate=request.variable_rate,
            disburse_to=request.disburse_to,
            rate=request.rate
        )
    except ValueError as e:
        raise _domain_error(e)
    return _account_response(loan)


@app.post("/loans/{loan_id}/payments")
async def make_loan_payment(
    loan_id: str,
    request: LoanPaymentRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Pay down a loan"""
    try:
        entry = system.make_payment(loan_id, request.amount, request.year, request.source_account_id)
        loan = system.get_account(loan_id)
    except ValueError as e:
        raise _domain_error(e)
    return {"payment": _entry_response(entry), "loan": _account_response(loan)}


@app.post("/collateral", status_code=status.HTTP_201_CREATED)
async def register_collateral(
    request: CollateralRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Register an asset that can secure a loan"""
    try:
        item = system.register_collateral(
            request.collateral_type, request.value, request.year, request.description
        )
    except ValueError as e:
        raise _domain_error(e)
    return item.to_dict()


@app.get("/collateral")
async def list_collateral(
    year: int,
    system: BankingSystem = Depends(get_banking_system)
):
    """Registered assets valued at the given year"""
    underwater = {item.id for item in system.underwater_collateral(year)}
    items = []
    for item in system.manager.collateral.all():
        result = item.to_dict()
        result["current_value"] = str(item.current_value(year))
        result["underwater"] = item.id in underwater
        items.append(result)
    return {"collateral": items}


# Simulation

@app.get("/summary")
async def get_summary(system: BankingSystem = Depends(get_banking_system)):
    """Aggregate position of the player"""
    return {
        "net_position": str(system.net_position()),
        "total_debt": str(system.total_debt()),
        "total_savings": str(system.total_savings()),
        "total_investments": str(system.total_investments()),
        "credit_utilization": str(system.credit_utilization()),
        "available_credit": str(system.available_credit()),
        "credit_score": system.manager.credit.score,
        "market_regime": system.manager.market.regime.value,
    }


@app.post("/simulation/advance")
async def advance_year(
    request: AdvanceYearRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Run the yearly update pass"""
    try:
        report = system.advance_year(request.year)
    except ValueError as e:
        raise _domain_error(e)
    return report.to_dict()


# Policy and rates

@app.get("/policy")
async def get_policy(system: BankingSystem = Depends(get_banking_system)):
    """Current policy scalars"""
    return system.get_policy()


@app.put("/policy")
async def update_policy(
    request: PolicyUpdateRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Update one or more policy scalars"""
    try:
        return system.update_policy(**request.model_dump(exclude_none=True))
    except ValueError as e:
        raise _domain_error(e)


@app.get("/rates/quote")
async def quote_loan_rate(
    category: str,
    term_years: int = Query(..., gt=0),
    credit_score: Optional[int] = None,
    system: BankingSystem = Depends(get_banking_system)
):
    """Price a loan at the live base rate"""
    score = credit_score if credit_score is not None else system.manager.credit.score
    try:
        rate = system.calculate_loan_interest_rate(score, category, term_years)
    except ValueError as e:
        raise _domain_error(e)
    return {
        "category": category,
        "credit_score": score,
        "term_years": term_years,
        "base_rate": str(system.base_interest_rate),
        "rate": str(rate),
    }


@app.get("/rates/history")
async def get_rate_history(system: BankingSystem = Depends(get_banking_system)):
    """Recorded yearly base rates, oldest first"""
    return {"history": [item.to_dict() for item in system.central_bank.get_historical_rates()]}


@app.get("/rates/projection")
async def get_rate_projection(
    years: int = Query(5, ge=0, le=50),
    projected_inflation: str = "0.02",
    system: BankingSystem = Depends(get_banking_system)
):
    """Projected base rates; the live rate is not changed"""
    try:
        projection: List[Dict[str, Any]] = [
            item.to_dict()
            for item in system.central_bank.project_future_rates(years, projected_inflation)
        ]
    except ValueError as e:
        raise _domain_error(e)
    return {"projection": projection}


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "system": "Life Banking Engine",
        "version": "1.0.0",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "accounts": "/accounts",
            "transactions": "/transactions",
            "loans": "/loans",
            "collateral": "/collateral",
            "simulation": "/simulation/advance",
            "policy": "/policy",
            "rates": "/rates",
        }
    }


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    settings = get_config()
    setup_logging(settings.log_level, log_format=settings.log_format)
    logger.info(f"Starting API on {host or settings.api_host}:{port or settings.api_port}")
    uvicorn.run(
        "life_banking.api:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=debug,
        log_level="info"
    )
